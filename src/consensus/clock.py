"""Consensus clock: query the panel, then reduce the answers to one time.

``compute_consensus_time`` is the entry point for callers that only want
the timestamp. ``collect_consensus`` keeps everything the estimator saw
(outcome set, rough median, kept and trimmed peers) for callers that
report on a fetch.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from src.config.panel import Peer, load_panel
from src.config.settings import settings
from src.consensus.errors import NoSuccessfulQueriesError
from src.consensus.outcomes import OutcomeSet
from src.consensus.trimmed_median import ConsensusEstimator, TrimResult, resolve_trim
from src.peers.executor import PeerQueryExecutor
from src.peers.ntp import PeerQuery, make_ntp_query


@dataclass(frozen=True)
class ConsensusRun:
    """Outcome set of one fetch plus the estimator's view of it.

    ``trim`` is None when no peer answered.
    """

    outcomes: OutcomeSet
    trim: Optional[TrimResult]

    @property
    def value(self) -> Optional[datetime]:
        return self.trim.value if self.trim is not None else None

    def resolve(self) -> datetime:
        """Return the consensus time or raise why there is none.

        Raises:
            NoSuccessfulQueriesError: if no peer answered in time
            InsufficientAgreementError: if fewer than ``minimum_keep`` peers agree
        """
        if self.trim is None:
            raise NoSuccessfulQueriesError(total=len(self.outcomes))
        return resolve_trim(self.trim)


async def collect_consensus(
    peers: Sequence[Peer],
    per_peer_timeout: float,
    cutoff_ms: int,
    minimum_keep: int,
    query: Optional[PeerQuery] = None,
) -> ConsensusRun:
    """Query every peer and trim the answers without raising on disagreement."""
    estimator = ConsensusEstimator(cutoff_ms=cutoff_ms, minimum_keep=minimum_keep)
    outcomes = await PeerQueryExecutor(query).run(peers, per_peer_timeout)
    try:
        trim = estimator.evaluate(outcomes)
    except NoSuccessfulQueriesError:
        trim = None
    return ConsensusRun(outcomes=outcomes, trim=trim)


async def compute_consensus_time(
    peers: Sequence[Peer],
    per_peer_timeout: float,
    cutoff_ms: int,
    minimum_keep: int,
    query: Optional[PeerQuery] = None,
) -> datetime:
    """Return the consensus UTC time of ``peers``.

    Args:
        peers: Non-empty panel of time servers
        per_peer_timeout: Seconds each peer gets before it is abandoned
        cutoff_ms: Maximum distance from the rough median a sample may have
        minimum_keep: Samples that must survive the trim

    Raises:
        NoSuccessfulQueriesError: if no peer answered in time
        InsufficientAgreementError: if fewer than ``minimum_keep`` peers agree
    """
    run = await collect_consensus(peers, per_peer_timeout, cutoff_ms, minimum_keep, query=query)
    return run.resolve()


def fetch_current_utc_datetime(
    per_peer_timeout_ms: Optional[int] = None,
    cutoff_ms: Optional[int] = None,
    minimum_keep: Optional[int] = None,
    peers: Optional[Sequence[Peer]] = None,
) -> datetime:
    """Blocking convenience wrapper using the configured panel and defaults."""
    if per_peer_timeout_ms is not None:
        timeout = per_peer_timeout_ms / 1000.0
    else:
        timeout = settings.per_peer_timeout
    panel = peers if peers is not None else load_panel(settings.PANEL_FILE)
    return asyncio.run(compute_consensus_time(
        panel,
        per_peer_timeout=timeout,
        cutoff_ms=cutoff_ms if cutoff_ms is not None else settings.CUTOFF_MS,
        minimum_keep=minimum_keep if minimum_keep is not None else settings.MINIMUM_KEEP,
        query=make_ntp_query(version=settings.NTP_VERSION, timeout=timeout),
    ))
