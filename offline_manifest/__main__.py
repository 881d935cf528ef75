"""CLI entrypoint for the offline manifest builder."""

from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from pathlib import Path

import anyio
from dotenv import find_dotenv, load_dotenv

from offline_manifest.config import build_config
from offline_manifest.errors import OfflineManifestError
from offline_manifest.flows import CHANNELS_DEFAULT, PAGE_INDEX_DEFAULT, build_catalog_flow

LOGGER = logging.getLogger("offline_manifest")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Offline manifest builder")
    parser.add_argument("--out", required=True, help="Output directory")
    parser.add_argument("--host", default=None, help="Origin host; derived from git if omitted")
    parser.add_argument("--page-index", default=PAGE_INDEX_DEFAULT, help="Page index JSON path")
    parser.add_argument("--channels", default=CHANNELS_DEFAULT, help="Channel list JSON path")
    parser.add_argument("--concurrency", type=int, default=None, help="Max concurrent requests")
    parser.add_argument("--rps", type=float, default=None, help="Requests per second")
    parser.add_argument(
        "--adaptive-renditions",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Probe landscape/portrait renditions for images",
    )
    parser.add_argument(
        "--generate-html",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Generate page HTML before building manifests",
    )
    parser.add_argument(
        "--generator-module",
        action="append",
        default=None,
        help="Module providing a per-template generator (repeatable)",
    )
    return parser


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    load_dotenv(find_dotenv(usecwd=True))

    parser = build_parser()
    args = parser.parse_args()

    config = build_config().with_overrides(
        host=args.host,
        concurrency=args.concurrency,
        rps=args.rps,
        generator_modules=tuple(args.generator_module) if args.generator_module else None,
    )

    flow_runner = partial(
        build_catalog_flow,
        out_dir=Path(args.out),
        config=config,
        page_index=args.page_index,
        channels=args.channels,
        adaptive_renditions=args.adaptive_renditions,
        generate_html=args.generate_html,
    )
    try:
        anyio.run(flow_runner)
    except OfflineManifestError as exc:
        LOGGER.error("Synthesis failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
