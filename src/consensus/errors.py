"""Invocation-level failures of the consensus clock.

Peer-level problems never show up here; they are recorded as ``Failure``
outcomes. Only the two ways a whole invocation can come up empty are
raised to the caller.
"""

from __future__ import annotations


class ConsensusError(Exception):
    """No trustworthy timestamp could be derived."""


class NoSuccessfulQueriesError(ConsensusError):
    def __init__(self, total: int):
        self.total = total
        super().__init__(f"no successful queries ({total} peers queried)")


class InsufficientAgreementError(ConsensusError):
    def __init__(self, kept: int, minimum_keep: int, successes: int):
        self.kept = kept
        self.minimum_keep = minimum_keep
        self.successes = successes
        super().__init__(
            "not enough agreeing servers for consensus "
            f"(kept {kept} of {successes}, need {minimum_keep})"
        )
