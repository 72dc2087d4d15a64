"""
Command-line entry point.

Retrieve Cloudflare Logpush logs for a time range from an R2 bucket and
write them to stdout, one JSON record per line.

Usage:
    # Last five minutes
    r2logs

    # Explicit range
    r2logs 2024-01-11T15:00:00Z 2024-01-11T15:01:00Z

    # Only list the matching objects
    r2logs 2024-01-11T15:00:00Z 2024-01-11T16:00:00Z list
"""

import argparse
import logging
import os
import sys
from typing import BinaryIO, Optional

from .config.settings import Settings, load_settings
from .exceptions import BackendError, ConfigError, DecodeError
from .logpush.keys import PartitionScheme
from .logpush.timerange import TimeRange, default_time_range, parse_timestamp
from .pipeline import RetrievalPipeline, setup_logging
from .storage import create_object_store

logger = logging.getLogger(__name__)

COMMANDS = ("retrieve", "list")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="r2logs",
        description="Retrieve Cloudflare Logpush logs stored in an R2 bucket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Positional arguments are [START_TIME] [END_TIME] [retrieve|list].
Times are ISO 8601 (2024-01-11T15:00:00Z); without an offset they are UTC.
END_TIME defaults to now and START_TIME to five minutes before END_TIME.

Credentials come from --config or the environment:
  CF_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY, BUCKET_NAME

Examples:
  r2logs
  r2logs -p 2024-01-11T15:00:00Z 2024-01-11T15:01:00Z
  r2logs 2024-01-11 2024-01-12 list
        """,
    )
    parser.add_argument(
        "positionals",
        nargs="*",
        metavar="ARG",
        help="[START_TIME] [END_TIME] [retrieve|list] (default command: retrieve)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show progress, time range and endpoint on stderr",
    )
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        help="Show per-request diagnostics on stderr",
    )
    parser.add_argument(
        "--pretty",
        "-p",
        action="store_true",
        help="Pretty-print JSON records",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="YAML config file (SOPS-encrypted files are decrypted)",
    )
    parser.add_argument(
        "--prefix",
        type=str,
        help="Partition template, e.g. 'date=%%Y-%%m-%%d/hour=%%H/' or '{DATE}'",
    )
    parser.add_argument(
        "--root",
        type=str,
        help="Fixed path in the bucket above the partitions",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        help="Maximum simultaneous requests",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        help="Retries per request after the first attempt",
    )
    return parser


def parse_invocation(
    parser: argparse.ArgumentParser, positionals: list[str]
) -> tuple[str, Optional[str], Optional[str]]:
    """
    Split positional arguments into command, start and end.

    The command, when present, is the last argument.

    Returns:
        (command, start, end) with unset times as None
    """
    args = list(positionals)
    command = "retrieve"
    if args and args[-1] in COMMANDS:
        command = args.pop()
    if len(args) > 2:
        parser.error(f"too many arguments: {' '.join(args[2:])}")
    for arg in args:
        if arg in COMMANDS:
            parser.error(f"command '{arg}' must come after the times")

    start = args[0] if len(args) > 0 else None
    end = args[1] if len(args) > 1 else None
    return command, start, end


def resolve_time_range(start: Optional[str], end: Optional[str]) -> TimeRange:
    """Build the requested time range from the raw arguments."""
    return default_time_range(
        start=parse_timestamp(start) if start else None,
        end=parse_timestamp(end) if end else None,
    )


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply command-line flags on top of file/environment settings."""
    if args.prefix:
        settings.partition_template = args.prefix
    if args.root is not None:
        settings.partition_root = args.root
    if args.concurrency is not None:
        settings.retrieval.max_workers = args.concurrency
    if args.max_retries is not None:
        settings.retrieval.max_retries = args.max_retries
    return settings


def _write_list(pipeline: RetrievalPipeline, time_range: TimeRange, out: BinaryIO):
    for obj in pipeline.list_objects(time_range):
        out.write(obj.key.encode("utf-8") + b"\n")


def _write_records(pipeline: RetrievalPipeline, time_range: TimeRange, out: BinaryIO):
    records = pipeline.retrieve(time_range)
    count = 0
    try:
        for record in records:
            out.write(record.line + b"\n")
            count += 1
    finally:
        records.close()
    logger.info(f"Wrote {count} records")


def main(argv: Optional[list[str]] = None, stdout: Optional[BinaryIO] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        setup_logging(level=logging.DEBUG)
    elif args.verbose:
        setup_logging(level=logging.INFO)
    else:
        setup_logging(level=logging.WARNING)

    command, start, end = parse_invocation(parser, args.positionals)
    out = stdout if stdout is not None else sys.stdout.buffer

    try:
        time_range = resolve_time_range(start, end)
        settings = apply_overrides(load_settings(args.config), args)
        settings.require_valid()
        scheme = PartitionScheme(settings.partition_template, settings.partition_root)

        logger.info(f"Time range: {time_range}")
        logger.info(
            f"Endpoint: {settings.endpoint_url} (bucket {settings.bucket_name})"
        )

        with create_object_store(settings) as store:
            pipeline = RetrievalPipeline(
                store, scheme, settings.retrieval, pretty=args.pretty
            )
            if command == "list":
                _write_list(pipeline, time_range, out)
            else:
                _write_records(pipeline, time_range, out)
        out.flush()
        return EXIT_OK

    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR
    except (BackendError, DecodeError) as e:
        out.flush()
        logger.error(f"Retrieval failed: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    except BrokenPipeError:
        # Reader went away (e.g. piped into head); silence the flush at exit
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
