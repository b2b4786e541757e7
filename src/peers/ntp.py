"""Single-shot NTP query against one peer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import ntplib

from src.config.panel import Peer

DEFAULT_NTP_VERSION = 3

PeerQuery = Callable[[Peer], datetime]


def query_ntp_peer(peer: Peer, version: int = DEFAULT_NTP_VERSION, timeout: float = 1.0) -> datetime:
    """Ask ``peer`` for the time and return it as an aware UTC datetime.

    Raises ``ntplib.NTPException`` or ``OSError`` when the peer cannot be
    reached or answers with a malformed packet.
    """
    client = ntplib.NTPClient()
    response = client.request(peer.host, version=version, port=peer.port, timeout=timeout)
    return datetime.fromtimestamp(response.tx_time, tz=timezone.utc)


def make_ntp_query(version: int = DEFAULT_NTP_VERSION, timeout: float = 1.0) -> PeerQuery:
    """Bind protocol options so the executor only has to pass the peer."""

    def query(peer: Peer) -> datetime:
        return query_ntp_peer(peer, version=version, timeout=timeout)

    return query
