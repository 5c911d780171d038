"""
mongocache — Server List Normalization

Turns the many shapes a server list can be configured in into one
deduplicated, order-stable list of ``{"host": ..., "port": ...}`` dicts.

Accepted shapes:
- "host", "host:port", "[::1]:27017", "/tmp/mongodb-27017.sock"
- "host1:27017,host2:27018" (comma-joined)
- {"host": "host1", "port": 27017}
- ["host1", 27017] / ("host1", 27017)
- any sequence mixing the above
"""

from collections.abc import Mapping, Sequence
from typing import Any, TypedDict

from ....errors import InvalidOptionError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 27017


class Server(TypedDict):
    """A normalized server address. ``port`` is None for unix socket paths."""

    host: str
    port: int | None


def is_socket_path(host: str) -> bool:
    """Return True if host names a unix domain socket rather than a network host."""
    return host.startswith("/") or host.endswith(".sock")


def server_key(server: Server) -> str:
    """Deduplication key of a normalized server."""
    if server["port"] is None:
        return server["host"]
    return f"{server['host']}:{server['port']}"


def _parse_port(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidOptionError("servers", "port must be an integer", value)
    try:
        port = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidOptionError("servers", "port must be an integer", value) from e
    if not 0 < port < 65536:
        raise InvalidOptionError("servers", "port must be between 1 and 65535", value)
    return port


def _parse_address(address: str) -> Server:
    """Parse a single "host[:port]" string."""
    address = address.strip()
    if not address:
        return {"host": DEFAULT_HOST, "port": DEFAULT_PORT}

    if is_socket_path(address):
        return {"host": address, "port": None}

    # Bracketed IPv6 literal: [::1] or [::1]:27017
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep:
            raise InvalidOptionError("servers", "unterminated IPv6 literal", address)
        port = _parse_port(rest[1:]) if rest.startswith(":") else DEFAULT_PORT
        return {"host": host or DEFAULT_HOST, "port": port}

    host, sep, port_text = address.rpartition(":")
    if not sep:
        return {"host": address, "port": DEFAULT_PORT}
    return {"host": host or DEFAULT_HOST, "port": _parse_port(port_text)}


def _normalize_one(server: Any) -> Server:
    if isinstance(server, str):
        return _parse_address(server)

    if isinstance(server, Mapping):
        host = server.get("host")
        host = str(host).strip() if host else DEFAULT_HOST
        if is_socket_path(host) and server.get("port") is None:
            return {"host": host, "port": None}
        port = server.get("port")
        return {"host": host, "port": DEFAULT_PORT if port is None else _parse_port(port)}

    if isinstance(server, Sequence) and not isinstance(server, bytes | bytearray):
        if not server or len(server) > 2:
            raise InvalidOptionError("servers", "positional server must be [host] or [host, port]", server)
        host = str(server[0]).strip() if server[0] else DEFAULT_HOST
        if len(server) == 1 or server[1] is None:
            if is_socket_path(host):
                return {"host": host, "port": None}
            return {"host": host, "port": DEFAULT_PORT}
        return {"host": host, "port": _parse_port(server[1])}

    raise InvalidOptionError("servers", f"unsupported server entry of type {type(server).__name__}", server)


def normalize_servers(servers: Any) -> list[Server]:
    """
    Normalize a server list.

    Args:
        servers: Any of the accepted shapes listed in the module docstring

    Returns:
        Deduplicated list of servers, in first-seen order

    Raises:
        InvalidOptionError: If the input is empty or an entry cannot be parsed
    """
    if isinstance(servers, str):
        entries: list[Any] = [part for part in servers.split(",") if part.strip()] or [""]
    elif isinstance(servers, Mapping):
        entries = [servers]
    elif isinstance(servers, Sequence) and not isinstance(servers, bytes | bytearray):
        entries = list(servers)
    else:
        raise InvalidOptionError("servers", "expected a string, a mapping or a sequence", servers)

    result: dict[str, Server] = {}
    for entry in entries:
        server = _normalize_one(entry)
        result.setdefault(server_key(server), server)

    if not result:
        raise InvalidOptionError("servers", "at least one server is required", servers)

    return list(result.values())
