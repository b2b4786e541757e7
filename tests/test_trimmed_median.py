"""Tests for the two-pass trimmed median."""

import itertools
from datetime import timedelta

import pytest

from conftest import BASE, at_ms
from src.config.panel import Peer
from src.consensus.errors import ConsensusError, InsufficientAgreementError, NoSuccessfulQueriesError
from src.consensus.outcomes import Failure, OutcomeSet, Success
from src.consensus.trimmed_median import ConsensusEstimator, median, offset_ms, resolve_trim, trim


def _outcomes(values, failures=0):
    items = [Success(peer=Peer(f"s{i}.example"), timestamp=at_ms(v)) for i, v in enumerate(values)]
    items += [Failure(peer=Peer(f"f{i}.example"), reason="TIMEOUT") for i in range(failures)]
    return OutcomeSet(items)


class TestMedian:
    """Floor-index median selection."""

    def test_empty(self):
        assert median([]) is None

    def test_single_value(self):
        assert median([at_ms(7)]) == at_ms(7)

    def test_odd_length(self):
        assert median([at_ms(30), at_ms(10), at_ms(20)]) == at_ms(20)

    def test_even_length_takes_upper_middle(self):
        """No interpolation: [0, 10, 20, 30] -> 20, not 15."""
        assert median([at_ms(0), at_ms(10), at_ms(20), at_ms(30)]) == at_ms(20)

    def test_permutation_invariance(self):
        samples = [at_ms(v) for v in (5, -3, 12, 0, 7)]
        results = {median(list(p)) for p in itertools.permutations(samples)}
        assert results == {at_ms(5)}


class TestOffset:
    def test_sign_independent(self):
        assert offset_ms(at_ms(-12), BASE) == 12
        assert offset_ms(at_ms(12), BASE) == 12

    def test_truncates_to_whole_milliseconds(self):
        assert offset_ms(BASE + timedelta(microseconds=19_900), BASE) == 19
        assert offset_ms(BASE - timedelta(microseconds=19_900), BASE) == 19


class TestTrimmedMedian:
    def test_single_sample_always_kept(self):
        result = trim(_outcomes([3]).successes, cutoff_ms=0, minimum_keep=1)
        assert result.kept[0].timestamp == at_ms(3)
        assert result.value == at_ms(3)

    def test_boundary_is_inclusive(self):
        result = trim(_outcomes([0, 0, 19]).successes, cutoff_ms=19, minimum_keep=3)
        assert len(result.kept) == 3
        assert result.trimmed == ()

    def test_one_past_boundary_is_dropped(self):
        result = trim(_outcomes([0, 0, 20]).successes, cutoff_ms=19, minimum_keep=2)
        assert len(result.kept) == 2
        assert [s.timestamp for s in result.trimmed] == [at_ms(20)]

    def test_sub_millisecond_excess_still_kept(self):
        successes = [
            Success(peer=Peer(f"s{i}.example"), timestamp=t)
            for i, t in enumerate([BASE, BASE, BASE + timedelta(microseconds=19_999)])
        ]
        result = trim(successes, cutoff_ms=19, minimum_keep=3)
        assert len(result.kept) == 3
        assert result.value == BASE

    def test_outlier_removed_before_second_pass(self):
        # first pass pivots on 2; 900 is dropped; second pass over [0,1,2,3] -> 2
        result = trim(_outcomes([0, 1, 2, 3, 900]).successes, cutoff_ms=19, minimum_keep=3)
        assert [s.timestamp for s in result.trimmed] == [at_ms(900)]
        assert result.value == at_ms(2)

    def test_second_pass_can_differ_from_first(self):
        result = trim(_outcomes([0, 10, 20, 25, 500, 600]).successes, cutoff_ms=19, minimum_keep=3)
        assert result.initial_median == at_ms(25)
        assert result.value == at_ms(20)

    def test_empty_samples(self):
        with pytest.raises(NoSuccessfulQueriesError):
            trim([], cutoff_ms=19, minimum_keep=1)

    def test_insufficient_agreement(self):
        estimator = ConsensusEstimator(cutoff_ms=19, minimum_keep=2)
        with pytest.raises(InsufficientAgreementError) as exc_info:
            estimator.estimate(_outcomes([0, 100, 200]))
        assert exc_info.value.kept == 1
        assert exc_info.value.minimum_keep == 2
        assert exc_info.value.successes == 3

    def test_negative_cutoff_rejected(self):
        with pytest.raises(ValueError):
            trim(_outcomes([0]).successes, cutoff_ms=-1, minimum_keep=1)


class TestConsensusEstimator:
    def test_failures_are_ignored(self):
        estimator = ConsensusEstimator(cutoff_ms=19, minimum_keep=3)
        assert estimator.estimate(_outcomes([1, 2, 3], failures=4)) == at_ms(2)

    def test_all_failures(self):
        estimator = ConsensusEstimator(cutoff_ms=19, minimum_keep=1)
        with pytest.raises(NoSuccessfulQueriesError) as exc_info:
            estimator.estimate(_outcomes([], failures=3))
        assert exc_info.value.total == 3
        assert "no successful queries" in str(exc_info.value)

    def test_reasons_are_distinguishable(self):
        estimator = ConsensusEstimator(cutoff_ms=19, minimum_keep=3)
        with pytest.raises(ConsensusError) as exc_info:
            estimator.estimate(_outcomes([0, 1]))
        assert isinstance(exc_info.value, InsufficientAgreementError)
        assert not isinstance(exc_info.value, NoSuccessfulQueriesError)
        assert "not enough agreeing servers" in str(exc_info.value)

    def test_idempotent(self):
        estimator = ConsensusEstimator(cutoff_ms=19, minimum_keep=3)
        outcomes = _outcomes([4, 0, 9, 2, 300, 7])
        first = estimator.evaluate(outcomes)
        assert estimator.evaluate(outcomes) == first
        assert estimator.estimate(outcomes) == estimator.estimate(outcomes)

    def test_evaluate_keeps_insufficient_result_as_data(self):
        estimator = ConsensusEstimator(cutoff_ms=19, minimum_keep=3)
        result = estimator.evaluate(_outcomes([0, 1]))
        assert not result.agreed
        assert len(result.kept) == 2
        with pytest.raises(InsufficientAgreementError):
            resolve_trim(result)
