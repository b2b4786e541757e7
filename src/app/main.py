#!/usr/bin/env python3
"""Print the current UTC time agreed on by the peer panel.

Usage examples:
  - quorum-clock
  - quorum-clock --panel config/panel.yaml --cutoff-ms 25 --minimum-keep 5
  - quorum-clock --peer tick.usask.ca --peer tock.usask.ca --minimum-keep 2
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional, Sequence

from src.config.panel import PeerPanel, load_panel, parse_peer
from src.config.settings import settings
from src.consensus.analysis import analyse_fetch
from src.consensus.clock import collect_consensus
from src.consensus.errors import ConsensusError
from src.peers.ntp import make_ntp_query
from src.utils.logging_config import setup_logging


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {number}")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch the current UTC time by NTP consensus")
    parser.add_argument(
        "--panel",
        default=settings.PANEL_FILE,
        help="Path to a peer panel file (default: built-in Canadian stratum-1 panel)",
    )
    parser.add_argument(
        "--peer",
        action="append",
        default=None,
        metavar="HOST[:PORT]",
        help="Query this peer instead of the panel (repeatable)",
    )
    parser.add_argument("--timeout-ms", type=_positive_int, default=settings.PER_PEER_TIMEOUT_MS, help="Per-peer timeout in ms")
    parser.add_argument("--cutoff-ms", type=_non_negative_int, default=settings.CUTOFF_MS, help="Trim cutoff in ms")
    parser.add_argument("--minimum-keep", type=_positive_int, default=settings.MINIMUM_KEEP, help="Peers that must agree")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Log level (default: %(default)s)")
    return parser


def _build_panel(parser: argparse.ArgumentParser, args: argparse.Namespace) -> PeerPanel:
    try:
        if args.peer:
            return PeerPanel([parse_peer(p) for p in args.peer])
        return load_panel(args.panel)
    except (OSError, ValueError) as e:
        parser.error(str(e))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    peers = _build_panel(parser, args)
    logger = setup_logging(args.log_level, component="quorum-clock", log_path=settings.LOG_FILE)

    timeout = args.timeout_ms / 1000.0
    run = asyncio.run(collect_consensus(
        peers,
        per_peer_timeout=timeout,
        cutoff_ms=args.cutoff_ms,
        minimum_keep=args.minimum_keep,
        query=make_ntp_query(version=settings.NTP_VERSION, timeout=timeout),
    ))
    logger.debug("fetch_analysis", **analyse_fetch(run).model_dump(mode="json"))

    try:
        utc_now = run.resolve()
    except ConsensusError as e:
        logger.error("consensus_unavailable", error=str(e))
        return 1

    print(f"current utc datetime:     {utc_now}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
