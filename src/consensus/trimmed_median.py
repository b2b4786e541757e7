"""Fixed-cutoff trimmed median over peer timestamps.

Two passes: a rough median over every successful sample, a trim that
drops samples further than ``cutoff_ms`` from it, then the median of what
is left. The median is the element at ``len // 2`` of the sorted list;
for even counts that is the upper-middle sample, never an average, so the
result is always a timestamp some peer actually reported.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence, Tuple

from src.consensus.errors import InsufficientAgreementError, NoSuccessfulQueriesError
from src.consensus.outcomes import OutcomeSet, Success
from src.utils.logging_config import get_logger

logger = get_logger(__name__)

_MILLISECOND = timedelta(milliseconds=1)


def median(samples: Iterable[datetime]) -> Optional[datetime]:
    """Return the upper-middle sample of the sorted input, or None if empty."""
    ordered = sorted(samples)
    if not ordered:
        return None
    return ordered[len(ordered) // 2]


def offset_ms(sample: datetime, pivot: datetime) -> int:
    """Absolute distance between two instants in whole milliseconds (truncated)."""
    return abs(sample - pivot) // _MILLISECOND


@dataclass(frozen=True)
class TrimResult:
    """Everything one estimator pass decided, for callers that report on it."""

    initial_median: datetime
    cutoff_ms: int
    minimum_keep: int
    kept: Tuple[Success, ...]
    trimmed: Tuple[Success, ...]
    value: Optional[datetime]

    @property
    def agreed(self) -> bool:
        return self.value is not None


def trim(successes: Sequence[Success], cutoff_ms: int, minimum_keep: int) -> TrimResult:
    """Run both median passes without raising on insufficient agreement.

    Raises:
        NoSuccessfulQueriesError: if there is nothing to take a median of
    """
    if cutoff_ms < 0:
        raise ValueError(f"Cutoff must not be negative, got {cutoff_ms}")

    initial = median(s.timestamp for s in successes)
    if initial is None:
        raise NoSuccessfulQueriesError(total=0)

    kept = tuple(s for s in successes if offset_ms(s.timestamp, initial) <= cutoff_ms)
    trimmed = tuple(s for s in successes if offset_ms(s.timestamp, initial) > cutoff_ms)

    value = None
    if len(kept) >= minimum_keep:
        value = median(s.timestamp for s in kept)

    return TrimResult(
        initial_median=initial,
        cutoff_ms=cutoff_ms,
        minimum_keep=minimum_keep,
        kept=kept,
        trimmed=trimmed,
        value=value,
    )


def resolve_trim(result: TrimResult) -> datetime:
    """Return the consensus value of ``result``.

    Raises:
        InsufficientAgreementError: if fewer than ``minimum_keep`` samples were kept
    """
    if result.value is None:
        logger.error(
            "consensus_failed",
            reason="insufficient_agreement",
            kept=len(result.kept),
            minimum_keep=result.minimum_keep,
        )
        raise InsufficientAgreementError(
            kept=len(result.kept),
            minimum_keep=result.minimum_keep,
            successes=len(result.kept) + len(result.trimmed),
        )
    logger.info("consensus_reached", value=result.value.isoformat(), kept=len(result.kept))
    return result.value


class ConsensusEstimator:
    """Reduces an outcome set to one consensus timestamp."""

    def __init__(self, cutoff_ms: int, minimum_keep: int):
        if cutoff_ms < 0:
            raise ValueError(f"Cutoff must not be negative, got {cutoff_ms}")
        self.cutoff_ms = cutoff_ms
        self.minimum_keep = minimum_keep

    def evaluate(self, outcomes: OutcomeSet) -> TrimResult:
        """Trim the outcome set; failures are carried as data, not raised.

        Raises:
            NoSuccessfulQueriesError: if no peer answered
        """
        successes = outcomes.successes
        if not successes:
            logger.error("consensus_failed", reason="no_successful_queries", peers=len(outcomes))
            raise NoSuccessfulQueriesError(total=len(outcomes))

        result = trim(successes, self.cutoff_ms, self.minimum_keep)
        logger.info(
            "consensus_trimmed",
            initial_median=result.initial_median.isoformat(),
            kept=len(result.kept),
            trimmed=len(result.trimmed),
            cutoff_ms=self.cutoff_ms,
        )
        return result

    def estimate(self, outcomes: OutcomeSet) -> datetime:
        """Return the consensus timestamp for ``outcomes``.

        Raises:
            NoSuccessfulQueriesError: if no peer answered
            InsufficientAgreementError: if too few peers agree with the rough median
        """
        return resolve_trim(self.evaluate(outcomes))
