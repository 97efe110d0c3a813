"""CLI entrypoint for the page feedback cleaning and sync job."""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from typing import Callable

from feedback_pipeline.common.cancellation import CancellationToken
from feedback_pipeline.common.config_loader import load_pipeline_config
from feedback_pipeline.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, STAGES
from feedback_pipeline.common.errors import FeedLoadError, PipelineError
from feedback_pipeline.common.ids import generate_run_id
from feedback_pipeline.common.logging import build_logger, log_event, log_failure
from feedback_pipeline.common.time_utils import parse_run_date
from feedback_pipeline.pipeline.reports import build_run_summary, write_run_summary
from feedback_pipeline.pipeline.runner import PipelineContext, build_context, execute_stage

ContextFactory = Callable[..., PipelineContext]


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all"])
    parser.add_argument("--run-date", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--summary-path", default=None)
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def run_command(
    args: argparse.Namespace,
    *,
    cancel_token: CancellationToken | None = None,
    context_factory: ContextFactory = build_context,
) -> int:
    run_id = args.run_id or generate_run_id()
    run_date = parse_run_date(args.run_date)
    logger = build_logger(run_id, log_dir=Path(args.log_dir) if args.log_dir else None, level=args.log_level)

    try:
        config = load_pipeline_config(
            Path(args.config_dir),
            overlay_config_dir=Path(args.overlay_config_dir) if args.overlay_config_dir else None,
        )
    except PipelineError as exc:
        log_failure(logger, f"invalid configuration: {exc}", run_id=run_id, event="CONFIG_FAIL", error_code=exc.error_code)
        return EXIT_HARD_FAIL

    ctx = context_factory(config, run_date=run_date, logger=logger, cancel_token=cancel_token or CancellationToken())
    stages = STAGES if args.command == "all" else (args.command,)

    results: list[dict] = []
    failed_stages: list[str] = []
    hard_fail = False
    try:
        for stage in stages:
            if ctx.cancel_token.is_cancelled():
                log_event(logger, "cancellation requested, skipping remaining stages", run_id=run_id, stage=stage, event="CANCELLED", status="warning")
                break
            log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
            try:
                results.extend(execute_stage(stage, ctx))
            except FeedLoadError as exc:
                failed_stages.append(stage)
                hard_fail = True
                log_failure(logger, "tier feeds unavailable", run_id=run_id, stage=stage, event="STAGE_FAIL", error_code=exc.error_code)
                break
            except PipelineError as exc:
                failed_stages.append(stage)
                log_failure(logger, "stage failed", run_id=run_id, stage=stage, event="STAGE_FAIL", error_code=exc.error_code)
                if args.strict:
                    hard_fail = True
                    break
            except Exception:
                failed_stages.append(stage)
                log_failure(logger, "unexpected stage failure", run_id=run_id, stage=stage, event="STAGE_FAIL", error_code="UNEXPECTED_ERROR")
                if args.strict:
                    hard_fail = True
                    break
            else:
                log_event(logger, "stage end", run_id=run_id, stage=stage, event="STAGE_END", status="ok")
    finally:
        ctx.close()

    summary = build_run_summary(run_id, run_date, results, failed_stages)
    log_event(logger, f"run finished with status {summary['status']}", run_id=run_id, event="RUN_SUMMARY", status=summary["status"])
    if args.summary_path:
        write_run_summary(Path(args.summary_path), summary)

    if hard_fail:
        return EXIT_HARD_FAIL
    if failed_stages:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def _install_cancel_handlers(token: CancellationToken) -> None:
    def _handler(_signum, _frame) -> None:
        token.cancel()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    token = CancellationToken()
    _install_cancel_handlers(token)
    try:
        return run_command(args, cancel_token=token)
    except PipelineError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
