"""Client connection state and protocol constants."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .varint import encode_var_int, read_var_int

log = logging.getLogger("idlecraft")

#: Protocol version name to assume when nothing else is known.
PROTO_DEFAULT_VERSION = "1.21.5"

#: Protocol version number to assume when nothing else is known.
PROTO_DEFAULT_PROTOCOL = 770

#: Compression threshold to use.
COMPRESSION_THRESHOLD = 256

#: Default buffer size when reading packets.
BUF_SIZE = 8 * 1024

# Handshake packet IDs.
SERVER_HANDSHAKE = 0x00

# Status packet IDs.
CLIENT_STATUS = 0x00
CLIENT_PING = 0x01
SERVER_STATUS = 0x00
SERVER_PING = 0x01

# Login packet IDs.
CLIENT_DISCONNECT = 0x00
CLIENT_ENCRYPTION_REQUEST = 0x01
CLIENT_LOGIN_SUCCESS = 0x02
CLIENT_SET_COMPRESSION = 0x03
CLIENT_LOGIN_PLUGIN_REQUEST = 0x04
SERVER_LOGIN_START = 0x00
SERVER_LOGIN_PLUGIN_RESPONSE = 0x02


class ClientState(Enum):
    """Protocol state a client may be in (encryption is not tracked)."""

    HANDSHAKE = "handshake"
    STATUS = "status"
    LOGIN = "login"
    PLAY = "play"

    @classmethod
    def from_id(cls, state_id):
        """State for a handshake ``next_state`` ID, or ``None`` if unknown."""
        return _STATE_BY_ID.get(state_id)

    def to_id(self):
        """Protocol ID of this state; ``-1`` for play, which has none."""
        return _ID_BY_STATE[self]


_ID_BY_STATE = {
    ClientState.HANDSHAKE: 0,
    ClientState.STATUS: 1,
    ClientState.LOGIN: 2,
    ClientState.PLAY: -1,
}
_STATE_BY_ID = {
    state_id: state for state, state_id in _ID_BY_STATE.items() if state_id >= 0
}


def _encode_string(text):
    raw = text.encode("utf-8")
    return encode_var_int(len(raw)) + raw


def _decode_string(data, offset):
    consumed, length = read_var_int(data[offset:])
    offset += consumed
    if length < 0:
        raise ValueError("negative string length")
    end = offset + length
    if end > len(data):
        raise ValueError("string runs past end of data")
    return bytes(data[offset:end]).decode("utf-8"), end


@dataclass
class Handshake:
    """Handshake packet sent by a client when it connects."""

    protocol_version: int
    server_addr: str
    server_port: int
    next_state: int

    def encode(self):
        """Encode the packet body (without ID or length)."""
        return (
            encode_var_int(self.protocol_version)
            + _encode_string(self.server_addr)
            + self.server_port.to_bytes(2, "big")
            + encode_var_int(self.next_state)
        )

    @classmethod
    def decode(cls, data):
        """Decode a packet body; raises ``ValueError`` if malformed."""
        data = bytes(data)
        consumed, protocol_version = read_var_int(data)
        server_addr, offset = _decode_string(data, consumed)
        if offset + 2 > len(data):
            raise ValueError("handshake truncated before server port")
        server_port = int.from_bytes(data[offset : offset + 2], "big")
        _, next_state = read_var_int(data[offset + 2 :])
        return cls(protocol_version, server_addr, server_port, next_state)


@dataclass
class Client:
    """A connected client. Compression is enabled when ``compression >= 0``."""

    peer: tuple
    state: ClientState = ClientState.HANDSHAKE
    compression: int = -1

    @classmethod
    def dummy(cls):
        """Client with an unspecified peer address."""
        return cls(("0.0.0.0", 0))

    def is_compressed(self):
        """Whether packet compression is in use."""
        return self.compression >= 0

    def set_compression(self, threshold):
        """Set the compression threshold; negative disables compression."""
        log.debug("Client now uses compression threshold of %d", threshold)
        self.compression = threshold


@dataclass
class ClientInfo:
    """Details learned about a client while handling its connection."""

    protocol: Optional[int] = None
    handshake: Optional[Handshake] = field(default=None)
    username: Optional[str] = None

    def effective_protocol(self):
        """Explicit protocol version, else the one from the handshake."""
        if self.protocol is not None:
            return self.protocol
        if self.handshake is not None:
            return self.handshake.protocol_version & 0xFFFFFFFF
        return None