"""
Command line entry point.

Usage (from project root):
    python -m src.curation --topic=monomios --max_per_topic=20
    python -m src.curation --topic=all

Exit status: 0 when every item was curated, 1 when any item ended in
unrecovered failure or every requested topic was skipped (missing
instruction file or failed fetch), 2 on configuration errors.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from .audit import AuditLog
from .config import AUDIT_LOG_PATH, DEFAULT_TOPIC, TOPIC_SEQUENCE, load_settings
from .pipeline import run_pipeline

ALL_TOPICS = "all"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="curate-questions",
        description="Curate stored questions with a chat model and write corrections back.",
    )
    parser.add_argument(
        "--topic",
        default=DEFAULT_TOPIC,
        help=f"Topic label to curate, or '{ALL_TOPICS}' for {', '.join(TOPIC_SEQUENCE)} "
             f"(default: {DEFAULT_TOPIC})",
    )
    parser.add_argument(
        "--max", "--max_per_topic",
        dest="max_items",
        type=int,
        default=0,
        help="Maximum questions fetched per topic (0 = no cap)",
    )
    parser.add_argument("--concurrency", type=int, default=None,
                        help="Override MAX_CONCURRENCY")
    parser.add_argument("--batch-size", type=int, default=None,
                        help="Override BATCH_SIZE")
    parser.add_argument("--log-file", type=Path, default=AUDIT_LOG_PATH,
                        help=f"Audit log path (default: {AUDIT_LOG_PATH})")
    return parser


def resolve_topics(topic: str) -> list[str]:
    if topic == ALL_TOPICS:
        return list(TOPIC_SEQUENCE)
    return [topic]


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        settings = load_settings()
    except ValueError as exc:
        print(f"❌ Configuration error: {exc}", file=sys.stderr)
        return 2

    if args.concurrency is not None:
        settings.max_concurrency = args.concurrency
    if args.batch_size is not None:
        settings.batch_size = args.batch_size
    if settings.max_concurrency < 1 or settings.batch_size < 1:
        print("❌ Configuration error: concurrency and batch size must be positive.",
              file=sys.stderr)
        return 2

    topics = resolve_topics(args.topic)
    with AuditLog(args.log_file) as audit:
        if args.max_items > 0:
            audit.log(f"🚦 Limiting to {args.max_items} questions per topic")
        report = asyncio.run(
            run_pipeline(settings, topics, audit.log, max_items=args.max_items)
        )
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
