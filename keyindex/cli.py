"""CLI entry point: run, scheduler, lookup."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from keyindex.base_stage import PipelineCancelled
from keyindex.config import KeyIndexConfig, load_config
from keyindex.logging_config import configure_logging
from keyindex.pipeline import KeyIndexPipeline
from keyindex.providers.github import GitHubClient
from keyindex.sink import RedisKeySink

logger = logging.getLogger("keyindex.cli")

EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


def run_once(config: KeyIndexConfig) -> dict[str, int]:
    """Run one full enumeration and indexing pass."""
    client = GitHubClient(config.github)
    sink = RedisKeySink.from_config(config.redis)
    try:
        pipeline = KeyIndexPipeline(client, client, sink, config.pipeline)
        return pipeline.run()
    finally:
        client.close()
        sink.close()


def _load(args: argparse.Namespace) -> KeyIndexConfig:
    config = load_config(
        redis_server=args.redis_server,
        github_token=args.github_oauth_token,
    )
    configure_logging(args.log_level or config.log_level)
    return config


def cmd_run(args: argparse.Namespace) -> None:
    """Index every GitHub user's public keys once."""
    config = _load(args)
    logger.info("Starting key index run")
    try:
        results = run_once(config)
    except (PipelineCancelled, KeyboardInterrupt):
        logger.warning("Key index run interrupted")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        logger.error("Key index run failed: %s", exc, exc_info=True)
        sys.exit(EXIT_FAILED)
    logger.info("Key index run complete: %s", results)


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based re-indexing loop."""
    from keyindex.scheduler import start_scheduler

    config = _load(args)
    start_scheduler(config)


def cmd_lookup(args: argparse.Namespace) -> None:
    """Print the logins that published a public key."""
    config = _load(args)
    sink = RedisKeySink.from_config(config.redis)
    try:
        logins = sink.lookup(args.key)
    finally:
        sink.close()
    if not logins:
        print("No logins recorded for this key.")
        return
    for login in logins:
        print(login)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keyindex",
        description="Index GitHub users' public SSH keys into Redis",
    )
    parser.add_argument(
        "--redis-server",
        default=None,
        help="host:port of the Redis instance (default: $REDIS_SERVER or localhost:6379)",
    )
    parser.add_argument(
        "--github-oauth-token",
        default=None,
        help="GitHub token to authenticate with (default: $GITHUB_TOKEN)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one full indexing pass")
    run_parser.set_defaults(func=cmd_run)

    sched_parser = subparsers.add_parser("scheduler", help="Re-index on a fixed interval")
    sched_parser.set_defaults(func=cmd_scheduler)

    lookup_parser = subparsers.add_parser("lookup", help="Show the logins owning a key")
    lookup_parser.add_argument("key", help="Public key, exactly as GitHub serves it")
    lookup_parser.set_defaults(func=cmd_lookup)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)
