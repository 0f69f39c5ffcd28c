"""Actions performed on connected clients."""

from __future__ import annotations

import json

from .client import CLIENT_DISCONNECT, ClientState
from .packet import PacketError, write_packet
from .varint import encode_var_int

#: Play-state disconnect packet ID.
GAME_DISCONNECT = 0x1A


def encode_chat_text(msg):
    """Encode a plain text chat component as a protocol string."""
    component = json.dumps({"text": msg}, separators=(",", ":"), ensure_ascii=False)
    raw = component.encode("utf-8")
    return encode_var_int(len(raw)) + raw


async def kick(client, msg, writer):
    """Send a disconnect with ``msg`` to the client.

    Only possible in the login and play states; raises ``PacketError`` otherwise.
    The connection should be closed afterwards.
    """
    packet_ids = {
        ClientState.LOGIN: CLIENT_DISCONNECT,
        ClientState.PLAY: GAME_DISCONNECT,
    }
    try:
        packet_id = packet_ids[client.state]
    except KeyError:
        raise PacketError(f"cannot kick client in {client.state.value} state") from None
    await write_packet(packet_id, encode_chat_text(msg), client, writer)