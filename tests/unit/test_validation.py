from feedback_pipeline.common.validation import (
    any_contains_html,
    contains_html,
    is_duplicate_comment,
    is_whitespace_garbage,
    normalize_comment,
)


def test_contains_html_detects_tags_and_links():
    assert contains_html("<b>bold</b> claim")
    assert contains_html('see <a href="https://spam.example">here</a>')


def test_contains_html_detects_entities():
    assert contains_html("fish &amp; chips")


def test_contains_html_ignores_plain_text_and_extra_spaces():
    assert not contains_html("The form   will not   submit")
    assert not contains_html("I rate this 5 > 3")
    assert not contains_html(None)
    assert not contains_html("")


def test_any_contains_html_skips_none_values():
    assert not any_contains_html([None, "fine", None])
    assert any_contains_html([None, "<script>x</script>"])


def test_normalize_comment_and_duplicate_lookup():
    seen = {normalize_comment("Page is broken")}
    assert is_duplicate_comment(normalize_comment("  PAGE IS BROKEN  "), seen)
    assert not is_duplicate_comment(normalize_comment("Page is fine"), seen)


def test_is_whitespace_garbage():
    assert is_whitespace_garbage("   ")
    assert is_whitespace_garbage("\t\n")
    assert not is_whitespace_garbage("")
    assert not is_whitespace_garbage(None)
    assert not is_whitespace_garbage(" text ")
