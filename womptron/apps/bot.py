"""CLI entrypoint for the Womptron bot."""
from __future__ import annotations
import argparse
import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from womptron.core.config import ConfigError, load_settings
from womptron.live.runner import WomptronRunner

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Womptron - post new womps with their images")
    p.add_argument("--config", default=None, help="YAML settings file (default: settings.yaml if present)")
    p.add_argument("--dry-run", action="store_true", help="Log posts instead of sending them")
    p.add_argument("--once", action="store_true", help="Run a single poll, drain the queue, then exit")
    return p.parse_args(argv)


def setup_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT, colorize=True)


async def _amain(args) -> int:
    overrides = {"publisher": {"dry_run": True}} if args.dry_run else None
    settings = load_settings(args.config, overrides=overrides)
    setup_logging(settings.logging.level)
    runner = WomptronRunner(settings)
    if args.once:
        await runner.run_once()
    else:
        await runner.run_until_stopped()
    return 0


def run(argv=None) -> int:
    load_dotenv()
    args = parse_args(argv)
    setup_logging("INFO")
    try:
        return asyncio.run(_amain(args))
    except ConfigError as e:
        logger.error(f"[Womptron] Startup aborted: {e}")
        return 2
    except KeyboardInterrupt:
        logger.warning("[Womptron] Interrupted; exiting")
        return 130


if __name__ == "__main__":  # pragma: no cover
    sys.exit(run())
