import sys

import pytest

from feedback_pipeline.cli import main, parse_args


def test_parse_args_defaults():
    args = parse_args(["sync"])
    assert args.command == "sync"
    assert args.config_dir == "./config"
    assert args.overlay_config_dir is None
    assert args.summary_path is None
    assert args.strict is False


def test_parse_args_accepts_overlay_config_dir():
    args = parse_args(["all", "--overlay-config-dir", "config/live", "--strict"])
    assert args.overlay_config_dir == "config/live"
    assert args.strict is True


def test_main_with_empty_argv_ignores_process_arguments(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["feedback-pipeline", "clean"])
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2
