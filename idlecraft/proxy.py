"""Relaying client connections to the real server, with optional PROXY v2 headers."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from contextlib import suppress
from enum import Enum

from .client import BUF_SIZE

log = logging.getLogger("idlecraft")

#: Fixed signature that starts every PROXY protocol version 2 header.
SIGNATURE = b"\r\n\r\n\x00\r\nQUIT\n"

_VERSION = 0x20
_COMMAND_LOCAL = 0x00
_COMMAND_PROXY = 0x01
_FAMILY_UNSPEC = 0x00
_FAMILY_INET = 0x10
_FAMILY_INET6 = 0x20
_TRANSPORT_STREAM = 0x01


class ProxyHeader(Enum):
    """Which PROXY protocol header to send to the server."""

    NONE = "none"
    LOCAL = "local"
    PROXY = "proxy"

    def not_none(self, not_none):
        """This header if ``not_none`` is true, otherwise ``NONE``."""
        return self if not_none else ProxyHeader.NONE


def _encode_header(command, family, addresses=b""):
    return (
        SIGNATURE
        + bytes([_VERSION | command, family | _TRANSPORT_STREAM])
        + len(addresses).to_bytes(2, "big")
        + addresses
    )


def local_proxy_header():
    """PROXY v2 header for a locally initiated connection."""
    return _encode_header(_COMMAND_LOCAL, _FAMILY_UNSPEC)


def stream_proxy_header(peer, local):
    """PROXY v2 header for a connection from ``peer`` accepted on ``local``.

    Both are ``(host, port)`` address tuples of the same IP family.
    """
    source = ipaddress.ip_address(peer[0])
    destination = ipaddress.ip_address(local[0])
    if source.version != destination.version:
        raise ValueError("peer and local address are of different IP families")
    family = _FAMILY_INET if source.version == 4 else _FAMILY_INET6
    addresses = (
        source.packed
        + destination.packed
        + int(peer[1]).to_bytes(2, "big")
        + int(local[1]).to_bytes(2, "big")
    )
    return _encode_header(_COMMAND_PROXY, family, addresses)


async def proxy(inbound_reader, inbound_writer, proxy_header, target):
    """Proxy the inbound stream to the ``(host, port)`` target."""
    await proxy_with_queue(inbound_reader, inbound_writer, proxy_header, target, b"")


async def proxy_with_queue(inbound_reader, inbound_writer, proxy_header, target, queue):
    """Proxy the inbound stream to ``target``, sending ``queue`` to it first."""
    outbound_reader, outbound_writer = await asyncio.open_connection(target[0], target[1])

    try:
        if proxy_header is ProxyHeader.LOCAL:
            outbound_writer.write(local_proxy_header())
        elif proxy_header is ProxyHeader.PROXY:
            peer = inbound_writer.get_extra_info("peername")
            local = inbound_writer.get_extra_info("sockname")
            if peer is None or local is None:
                raise OSError("address not known for inbound stream")
            outbound_writer.write(stream_proxy_header(peer[:2], local[:2]))
    except BaseException:
        await _close(outbound_writer)
        raise

    await relay(
        inbound_reader, inbound_writer, outbound_reader, outbound_writer, b"", queue
    )


async def relay(
    inbound_reader,
    inbound_writer,
    outbound_reader,
    outbound_writer,
    inbound_queue,
    outbound_queue,
):
    """Copy data both ways until both sides finish, after sending the queues.

    ``inbound_queue`` goes to the client, ``outbound_queue`` to the server.
    Both connections are closed afterwards.
    """
    try:
        if inbound_queue:
            log.debug("Relaying %d queued bytes to client", len(inbound_queue))
            inbound_writer.write(bytes(inbound_queue))
            await inbound_writer.drain()
        if outbound_queue:
            log.debug("Relaying %d queued bytes to server", len(outbound_queue))
            outbound_writer.write(bytes(outbound_queue))
            await outbound_writer.drain()

        tasks = [
            asyncio.ensure_future(_pipe(inbound_reader, outbound_writer)),
            asyncio.ensure_future(_pipe(outbound_reader, inbound_writer)),
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
    finally:
        await _close(inbound_writer)
        await _close(outbound_writer)


async def _pipe(reader, writer):
    while True:
        chunk = await reader.read(BUF_SIZE)
        if not chunk:
            break
        writer.write(chunk)
        await writer.drain()
    if writer.can_write_eof():
        writer.write_eof()


async def _close(writer):
    writer.close()
    with suppress(OSError):
        await writer.wait_closed()