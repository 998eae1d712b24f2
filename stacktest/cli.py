"""
stacktest command line.

Usage:
    stacktest run ./examples/website --config aws:region=us-west-2
    stacktest run ./examples/eks --ignore-destroy-errors
    stacktest poll-http https://example.com --contains "Hello" --timeout 2m
    stacktest --help

Exit codes: 0 on success, 1 when a stage failed or a poll timed out, 2 on
configuration errors.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import __version__
from .command import run_program_test
from .config import StackTestConfig, load_config
from .exceptions import ConfigError, PollTimeoutError, StageError
from .lifecycle import TeardownPolicy
from .log import LogError, Logger, create_root_lg, derive_lg
from .options import ProgramTestOptions, get_prefix
from .poll import Poller, RetryPolicy
from .probes import assert_http_result_with_retry

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _parse_config_items(items: list[str]) -> dict[str, str]:
    config = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ConfigError("config items must look like key=value", item=item)
        config[key] = value
    return config


def _cmd_run(args: argparse.Namespace, cfg: StackTestConfig, lg: Logger) -> int:
    prefix = args.prefix or get_prefix()
    opts = ProgramTestOptions(
        dir=Path(args.dir),
        config={"prefix": prefix, **_parse_config_items(args.config)},
        prefix=prefix,
        expect_failure=args.expect_failure,
        skip_preview=args.skip_preview,
        skip_refresh=args.skip_refresh,
        retry_failed_steps=args.retry_failed_steps,
        binary=args.binary or cfg.binary,
    )
    if args.ignore_destroy_errors:
        policy = TeardownPolicy.BEST_EFFORT
    else:
        policy = cfg.teardown.policy

    lg.info("running program", extra={"dir": args.dir, "prefix": prefix})
    try:
        run = run_program_test(opts, policy=policy, lg=lg)
    except StageError as e:
        lg.error("program test failed", extra={"stage": e.stage.value})
        print(f"[{e.stage.value}] {e}", file=sys.stderr)
        return EXIT_FAILURE
    lg.info("program test passed", extra={"stages": [s.value for s in run.stages]})
    return EXIT_OK


def _cmd_poll_http(args: argparse.Namespace, cfg: StackTestConfig, lg: Logger) -> int:
    defaults = cfg.readiness if args.readiness else cfg.poll
    policy = RetryPolicy.of(
        args.interval if args.interval is not None else defaults.interval,
        args.timeout if args.timeout is not None else defaults.timeout,
    )
    text = args.contains

    def check(body: str) -> bool:
        return text is None or text in body

    try:
        result = assert_http_result_with_retry(
            args.url, check, policy=policy, poller=Poller(derive_lg(lg, "poll"))
        )
    except PollTimeoutError as e:
        print(str(e), file=sys.stderr)
        return EXIT_FAILURE
    lg.info(
        "url ready",
        extra={"url": args.url, "after": result.elapsed, "attempts": result.attempts},
    )
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="stacktest",
        description="Provision, validate and tear down infrastructure programs",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"stacktest {__version__}"
    )
    parser.add_argument("--config-file", help="YAML configuration file")
    parser.add_argument("-l", "--log-level", help="override the configured log level")

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="run one program test")
    run.add_argument("dir", help="program directory")
    run.add_argument(
        "-c",
        "--config",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="stack config item (repeatable)",
    )
    run.add_argument("--prefix", help="resource name prefix (default: derived)")
    run.add_argument(
        "--ignore-destroy-errors",
        action="store_true",
        help="log destroy failures instead of failing",
    )
    run.add_argument("--expect-failure", action="store_true")
    run.add_argument("--skip-preview", action="store_true")
    run.add_argument("--skip-refresh", action="store_true")
    run.add_argument(
        "--retry-failed-steps",
        action="store_true",
        help="run a failed update once more before failing",
    )
    run.add_argument("--binary", help="provisioning CLI binary")
    run.set_defaults(handler=_cmd_run)

    poll = sub.add_parser("poll-http", help="wait until a URL serves a response")
    poll.add_argument("url")
    poll.add_argument("--contains", help="text the response body must contain")
    poll.add_argument("--interval", help="poll interval, e.g. 3s")
    poll.add_argument("--timeout", help="overall timeout, e.g. 60s")
    poll.add_argument(
        "--readiness",
        action="store_true",
        help="default to the readiness section (long timeout) instead of poll",
    )
    poll.set_defaults(handler=_cmd_poll_http)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the stacktest CLI."""
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config_file)
        level = args.log_level or cfg.logging.level
        lg = create_root_lg(level, colors=cfg.logging.colors)
        return args.handler(args, cfg, derive_lg(lg, "stacktest"))
    except (ConfigError, LogError) as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG


if __name__ == "__main__":
    sys.exit(main())
