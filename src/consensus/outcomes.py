"""Per-peer query outcomes and the outcome set of one invocation.

A peer either answered with a timestamp (``Success``) or did not
(``Failure``). Every configured peer gets exactly one outcome, in panel
order, whatever order the answers arrived in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterator, List, Sequence, Tuple, Union

from src.config.panel import Peer

TIMEOUT_REASON = "TIMEOUT"


@dataclass(frozen=True)
class Success:
    peer: Peer
    timestamp: datetime


@dataclass(frozen=True)
class Failure:
    peer: Peer
    reason: str

    @property
    def timed_out(self) -> bool:
        return self.reason == TIMEOUT_REASON


Outcome = Union[Success, Failure]


class OutcomeSet:
    """Immutable, panel-ordered collection of outcomes for one invocation."""

    def __init__(self, outcomes: Sequence[Outcome]):
        self._outcomes: Tuple[Outcome, ...] = tuple(outcomes)

    def __iter__(self) -> Iterator[Outcome]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def __getitem__(self, index: int) -> Outcome:
        return self._outcomes[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OutcomeSet):
            return NotImplemented
        return self._outcomes == other._outcomes

    def __repr__(self) -> str:
        return f"OutcomeSet(successes={len(self.successes)}, failures={len(self.failures)})"

    @property
    def successes(self) -> List[Success]:
        return [o for o in self._outcomes if isinstance(o, Success)]

    @property
    def failures(self) -> List[Failure]:
        return [o for o in self._outcomes if isinstance(o, Failure)]

    @property
    def timestamps(self) -> List[datetime]:
        return [o.timestamp for o in self.successes]

    @property
    def peers(self) -> List[Peer]:
        return [o.peer for o in self._outcomes]
