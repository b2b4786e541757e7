import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Union

import pytest

from src.config.panel import Peer


BASE = datetime(2025, 8, 17, 12, 0, 0, tzinfo=timezone.utc)


def at_ms(offset: float) -> datetime:
    """A timestamp ``offset`` milliseconds after BASE."""
    return BASE + timedelta(milliseconds=offset)


class Slow:
    """Answer that arrives only after ``delay`` seconds."""

    def __init__(self, delay: float, value: datetime):
        self.delay = delay
        self.value = value


Answer = Union[datetime, Exception, Slow]


class FakeQuery:
    """Stands in for an NTP query; answers are keyed by host."""

    def __init__(self, answers: Dict[str, Answer]):
        self.answers = answers
        self.calls: List[str] = []
        self.late: List[str] = []
        self.lock = threading.Lock()

    def __call__(self, peer: Peer) -> datetime:
        with self.lock:
            self.calls.append(peer.host)
        answer = self.answers[peer.host]
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, Slow):
            time.sleep(answer.delay)
            with self.lock:
                self.late.append(peer.host)
            return answer.value
        return answer


@pytest.fixture
def make_panel():
    def _make(n: int) -> List[Peer]:
        return [Peer(host=f"p{i}.example", label=f"P{i}") for i in range(1, n + 1)]
    return _make


@pytest.fixture
def fake_query():
    return FakeQuery
