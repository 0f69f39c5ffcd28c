"""Parsing socket addresses from configuration strings."""

from __future__ import annotations

import ipaddress
import re
import socket

_PORT = re.compile(r"\+?[0-9]+")


def _parse_port(text):
    if not _PORT.fullmatch(text):
        return None
    port = int(text)
    return port if port <= 0xFFFF else None


def _parse_literal(text):
    if text.startswith("["):
        host, sep, port_text = text[1:].partition("]:")
        if not sep:
            return None
        try:
            ip = ipaddress.IPv6Address(host)
        except ValueError:
            return None
    else:
        host, sep, port_text = text.rpartition(":")
        if not sep:
            return None
        try:
            ip = ipaddress.IPv4Address(host)
        except ValueError:
            return None
    port = _parse_port(port_text)
    return None if port is None else (str(ip), port)


def _resolve(text):
    host, sep, port_text = text.rpartition(":")
    if not sep:
        return None
    port = _parse_port(port_text)
    if port is None:
        return None
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (OSError, UnicodeError):
        return None
    for _family, _type, _proto, _name, sockaddr in infos:
        return (sockaddr[0], sockaddr[1])
    return None


def parse_socket_addr(text):
    """Parse ``host:port`` into an ``(ip, port)`` tuple, resolving host names.

    Raises ``ValueError`` if the text is neither an IP address with port nor a
    resolvable host with port.
    """
    result = _parse_literal(text) or _resolve(text)
    if result is None:
        raise ValueError(
            f"invalid value: string {text!r}, expected IP or resolvable host and port"
        )
    return result