"""Fetch analysis: who failed, who was trimmed, who agreed.

Builds a serializable summary of one ``ConsensusRun``. Rendering it
(JSON files, dashboards) is left to the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from src.consensus.clock import ConsensusRun
from src.consensus.trimmed_median import offset_ms


class FailedPeer(BaseModel):
    peer: str
    reason: str
    timed_out: bool


class MeasuredPeer(BaseModel):
    peer: str
    timestamp: datetime
    offset_ms: int = Field(..., ge=0, description="Distance from the initial median")


class FetchAnalysis(BaseModel):
    queried: int
    consensus: Optional[datetime] = None
    consensus_peer: Optional[str] = None
    initial_median: Optional[datetime] = None
    cutoff_ms: Optional[int] = None
    minimum_keep: Optional[int] = None
    failed: List[FailedPeer] = Field(default_factory=list)
    trimmed: List[MeasuredPeer] = Field(default_factory=list)
    kept: List[MeasuredPeer] = Field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def trimmed_count(self) -> int:
        return len(self.trimmed)


def analyse_fetch(run: ConsensusRun) -> FetchAnalysis:
    failed = [
        FailedPeer(peer=f.peer.address, reason=f.reason, timed_out=f.timed_out)
        for f in run.outcomes.failures
    ]
    trim = run.trim
    if trim is None:
        return FetchAnalysis(queried=len(run.outcomes), failed=failed)

    def measured(success) -> MeasuredPeer:
        return MeasuredPeer(
            peer=success.peer.address,
            timestamp=success.timestamp,
            offset_ms=offset_ms(success.timestamp, trim.initial_median),
        )

    consensus_peer = None
    if trim.value is not None:
        consensus_peer = next(s.peer.address for s in trim.kept if s.timestamp == trim.value)

    return FetchAnalysis(
        queried=len(run.outcomes),
        consensus=trim.value,
        consensus_peer=consensus_peer,
        initial_median=trim.initial_median,
        cutoff_ms=trim.cutoff_ms,
        minimum_keep=trim.minimum_keep,
        failed=failed,
        trimmed=[measured(s) for s in trim.trimmed],
        kept=[measured(s) for s in trim.kept],
    )
