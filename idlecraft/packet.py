"""Raw Minecraft packet framing, compression and stream I/O."""

from __future__ import annotations

import logging
import zlib
from dataclasses import dataclass

from .client import BUF_SIZE
from .varint import encode_var_int, read_var_int

log = logging.getLogger("idlecraft")


class PacketError(Exception):
    """A packet could not be read, decoded, encoded or written."""


def _var_int(buf):
    try:
        return read_var_int(buf)
    except ValueError as err:
        raise PacketError(str(err)) from err


@dataclass
class RawPacket:
    """A packet ID with its undecoded data."""

    id: int
    data: bytes

    @classmethod
    def _from_id_and_data(cls, buf):
        consumed, packet_id = _var_int(buf)
        return cls(packet_id & 0xFF, bytes(buf[consumed:]))

    @classmethod
    def decode_with_len(cls, client, buf):
        """Decode a packet that starts with its length header."""
        consumed, length = _var_int(buf)
        if length < 0 or consumed + length > len(buf):
            raise PacketError("packet length exceeds available data")
        return cls.decode_without_len(client, buf[consumed : consumed + length])

    @classmethod
    def decode_without_len(cls, client, buf):
        """Decode a packet without length header, honouring client compression."""
        if not client.is_compressed():
            return cls._from_id_and_data(buf)

        consumed, data_len = _var_int(buf)
        body = bytes(buf[consumed:])
        if data_len == 0:
            return cls._from_id_and_data(body)

        try:
            decompressed = zlib.decompress(body)
        except zlib.error as err:
            log.error("Packet decompression error: %s", err)
            raise PacketError(f"packet decompression error: {err}") from err

        if len(decompressed) != data_len:
            log.error(
                "Decompressed packet has different length than expected (%db != %db)",
                len(decompressed),
                data_len,
            )
            raise PacketError("decompressed packet length mismatch")

        return cls._from_id_and_data(decompressed)

    def encode_with_len(self, client):
        """Encode the packet with its length header."""
        payload = self.encode_without_len(client)
        return encode_var_int(len(payload)) + payload

    def encode_without_len(self, client):
        """Encode the packet without length header, compressing as configured."""
        payload = encode_var_int(self.id) + bytes(self.data)
        threshold = client.compression
        if threshold < 0:
            return payload

        data_len = len(payload)
        if data_len > threshold:
            return encode_var_int(data_len) + zlib.compress(payload)
        return encode_var_int(0) + payload


async def _fill(reader, buf):
    """Read more bytes into ``buf``; ``False`` when the stream has ended."""
    try:
        chunk = await reader.read(BUF_SIZE)
    except ConnectionResetError:
        return False
    except OSError as err:
        raise PacketError(f"failed to read from stream: {err}") from err
    if not chunk:
        return False
    buf.extend(chunk)
    return True


async def read_packet(client, buf, reader):
    """Read one packet from ``reader``, using ``buf`` as the carry-over buffer.

    Consumed bytes are removed from ``buf``; anything read beyond the packet
    stays in it. Returns ``(packet, raw_bytes)``, or ``None`` when the stream
    closed before a full packet arrived.
    """
    while len(buf) < 2:
        if not await _fill(reader, buf):
            return None

    try:
        consumed, length = read_var_int(buf)
    except ValueError as err:
        log.error("Malformed packet, could not read packet length")
        raise PacketError("malformed packet length") from err
    if length < 0:
        log.error("Malformed packet, negative packet length")
        raise PacketError("negative packet length")

    total = consumed + length
    while len(buf) < total:
        if not await _fill(reader, buf):
            return None

    raw = bytes(buf[:total])
    del buf[:total]
    return RawPacket.decode_with_len(client, raw), raw


async def write_packet(packet_id, data, client, writer):
    """Frame a packet for ``client`` and write it to ``writer``."""
    framed = RawPacket(packet_id, bytes(data)).encode_with_len(client)
    try:
        writer.write(framed)
        await writer.drain()
    except OSError as err:
        raise PacketError(f"failed to write packet: {err}") from err