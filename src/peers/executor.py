"""Concurrent fan-out of time queries across the peer panel.

Every peer is queried by its own asyncio task, each bounded by its own
timeout. A peer that errors or runs out of time becomes a ``Failure``
outcome; the executor itself never raises for peer-level problems.

The query capability is a plain blocking callable (``ntplib`` is
synchronous), so each attempt runs on its own daemon thread and reports
back through ``call_soon_threadsafe``. A query abandoned on timeout keeps
its thread until the socket or resolver gives up. Its result is dropped
because the awaiting future is already cancelled, or because the loop has
closed. Daemon threads never hold up interpreter exit.
"""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime
from typing import Optional, Sequence

from src.config.panel import Peer
from src.consensus.outcomes import TIMEOUT_REASON, Failure, Outcome, OutcomeSet, Success
from src.peers.ntp import PeerQuery, make_ntp_query
from src.utils.logging_config import get_logger

logger = get_logger(__name__)


def _settle(future: asyncio.Future, result: Optional[datetime], error: Optional[Exception]) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


def _worker(
    loop: asyncio.AbstractEventLoop,
    future: asyncio.Future,
    query: PeerQuery,
    peer: Peer,
) -> None:
    result, error = None, None
    try:
        result = query(peer)
    except Exception as e:
        error = e
    try:
        loop.call_soon_threadsafe(_settle, future, result, error)
    except RuntimeError:
        # loop already closed; nobody is waiting for this peer
        logger.debug("peer_query_result_dropped", peer=peer.address)


class PeerQueryExecutor:
    """Queries all peers concurrently and collects one outcome per peer."""

    def __init__(self, query: Optional[PeerQuery] = None):
        self.query = query

    async def run(self, peers: Sequence[Peer], per_peer_timeout: float) -> OutcomeSet:
        """Query every peer and return the complete, panel-ordered outcome set.

        Args:
            peers: Non-empty panel of peers to query
            per_peer_timeout: Seconds each peer gets before it is abandoned

        Returns:
            OutcomeSet with exactly one outcome per peer
        """
        peers = tuple(peers)
        if not peers:
            raise ValueError("Peer panel must not be empty")
        if per_peer_timeout <= 0:
            raise ValueError(f"Per-peer timeout must be positive, got {per_peer_timeout}")

        query = self.query or make_ntp_query(timeout=per_peer_timeout)
        outcomes = await asyncio.gather(
            *(self._bounded(peer, query, per_peer_timeout) for peer in peers)
        )

        result = OutcomeSet(outcomes)
        logger.info(
            "peer_queries_completed",
            peers=len(result),
            successes=len(result.successes),
            failures=len(result.failures),
        )
        return result

    async def _bounded(self, peer: Peer, query: PeerQuery, per_peer_timeout: float) -> Outcome:
        try:
            return await asyncio.wait_for(self._attempt(peer, query), timeout=per_peer_timeout)
        except asyncio.TimeoutError:
            logger.warning("peer_query_timed_out", peer=peer.address, timeout=per_peer_timeout)
            return Failure(peer=peer, reason=TIMEOUT_REASON)

    async def _attempt(self, peer: Peer, query: PeerQuery) -> Outcome:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        threading.Thread(
            target=_worker,
            args=(loop, future, query, peer),
            name=f"peer-query-{peer.address}",
            daemon=True,
        ).start()
        try:
            timestamp = await future
        except Exception as e:
            logger.warning("peer_query_failed", peer=peer.address, error=str(e))
            return Failure(peer=peer, reason=f"{peer.address}: {e}")
        logger.debug("peer_query_succeeded", peer=peer.address, timestamp=timestamp.isoformat())
        return Success(peer=peer, timestamp=timestamp)
