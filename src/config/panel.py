"""Static peer panel loader.

Parses a minimal YAML-like file with the following structure:

peers:
  - host: clock.uregina.ca
    port: 123
    label: University of Regina (Regina, SK)
  - host: ntp2.torix.ca

``port`` defaults to 123 and ``label`` is optional. When no file is given
the built-in ``DEFAULT_PANEL`` (13 stratum-1 servers in Canada) is used.

Only ``host``, ``port`` and ``label`` are accepted. Anything else is
rejected with a ``ValueError`` naming the offending line.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

NTP_PORT = 123


@dataclass(frozen=True)
class Peer:
    host: str
    port: int = NTP_PORT
    label: str = ""

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.address


class PeerPanel:
    """Read-only list of peers shared by every query of an invocation."""

    def __init__(self, peers: Sequence[Peer]):
        self._peers: Tuple[Peer, ...] = tuple(peers)

    def __iter__(self) -> Iterator[Peer]:
        return iter(self._peers)

    def __len__(self) -> int:
        return len(self._peers)

    def __getitem__(self, index: int) -> Peer:
        return self._peers[index]

    def __repr__(self) -> str:
        return f"PeerPanel({[p.address for p in self._peers]})"

    @property
    def peers(self) -> Tuple[Peer, ...]:
        return self._peers


# stratum-1 ntp servers in Canada
DEFAULT_PANEL = PeerPanel([
    Peer("clock.uregina.ca", label="University of Regina (Regina, SK)"),
    Peer("subitaneous.cpsc.ucalgary.ca", label="University of Calgary (Calgary, AB)"),
    Peer("ntp2.torix.ca", label="Toronto Internet Exchange ntp2 (Toronto, ON)"),
    Peer("ntp3.torix.ca", label="Toronto Internet Exchange ntp3 (Toronto, ON)"),
    Peer("ntp1.acorn-ns.ca", label="Acorn ntp1 (Halifax, NS)"),
    Peer("ntp2.acorn-ns.ca", label="Acorn ntp2 (Halifax, NS)"),
    Peer("ntp.nyy.ca", label="Andrew Wright (Saskatoon, SK)"),
    Peer("ntp.zaf.ca", label="Jeff Fisher (Regina, SK)"),
    Peer("ntp1.qix.ca", label="Montreal Internet Exchange ntp1 (Montreal, QC)"),
    Peer("ntp2.qix.ca", label="Montreal Internet Exchange ntp2 (Montreal, QC)"),
    Peer("tick.usask.ca", label="University of Saskatchewan ntp1 (Saskatoon, SK)"),
    Peer("tock.usask.ca", label="University of Saskatchewan ntp2 (Saskatoon, SK)"),
    Peer("ntp.wetmore.ca", label="wetmore.ca (Saint John, NB)"),
])


def parse_peer(address: str) -> Peer:
    """Accepts 'host' or 'host:port' and returns a Peer."""
    address = address.strip()
    if not address:
        raise ValueError("Empty peer address")
    if ":" in address:
        host, port_str = address.rsplit(":", 1)
        if not host.strip():
            raise ValueError(f"No host in peer address {address!r}")
        return Peer(host=host.strip(), port=_port(port_str.strip(), address))
    return Peer(host=address)


_PEER_FIELDS = ("host", "port", "label")


def _port(value: str, where: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ValueError(f"{where}: port must be an integer, got {value!r}") from None
    if not 1 <= port <= 65535:
        raise ValueError(f"{where}: port {port} outside 1..65535")
    return port


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def _finish_peer(fields: Dict[str, Tuple[str, int]], start: int) -> Peer:
    if "host" not in fields or not fields["host"][0]:
        raise ValueError(f"line {start}: peer entry without host")
    port = NTP_PORT
    if "port" in fields:
        value, lineno = fields["port"]
        port = _port(value, f"line {lineno}")
    label = fields["label"][0] if "label" in fields else ""
    return Peer(host=fields["host"][0], port=port, label=label)


def panel_from_text(text: str) -> PeerPanel:
    """Build a panel from the ``peers:`` subset described in the module docstring.

    Raises:
        ValueError: naming the offending line for unknown keys, missing
            hosts, bad ports or entries outside the ``peers:`` block
    """
    peers: List[Peer] = []
    fields: Optional[Dict[str, Tuple[str, int]]] = None
    start = 0
    in_peers = False

    for lineno, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if not raw[0].isspace():
            if stripped != "peers:":
                raise ValueError(f"line {lineno}: unexpected top-level entry {stripped!r}")
            in_peers = True
            continue
        if not in_peers:
            raise ValueError(f"line {lineno}: peer entry outside 'peers:' block")

        if stripped.startswith("-"):
            if fields is not None:
                peers.append(_finish_peer(fields, start))
            fields, start = {}, lineno
            stripped = stripped[1:].strip()
            if not stripped:
                continue
        elif fields is None:
            raise ValueError(f"line {lineno}: expected '- host: ...'")

        key, sep, value = stripped.partition(":")
        key = key.strip()
        if not sep:
            raise ValueError(f"line {lineno}: expected 'key: value', got {stripped!r}")
        if key not in _PEER_FIELDS:
            raise ValueError(f"line {lineno}: unknown peer field {key!r}")
        if key in fields:
            raise ValueError(f"line {lineno}: duplicate peer field {key!r}")
        fields[key] = (_unquote(value.strip()), lineno)

    if fields is not None:
        peers.append(_finish_peer(fields, start))
    if not peers:
        raise ValueError("No peers defined in panel config")
    return PeerPanel(peers)


def load_panel(path: Optional[str] = None) -> PeerPanel:
    if path is None:
        return DEFAULT_PANEL
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return panel_from_text(text)
