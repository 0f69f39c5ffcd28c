# idlecraft

Building blocks for letting a Minecraft server sleep while nobody is playing and
waking it up when a player connects.

## What is in the package

- `idlecraft.varint`: `read_var_int(buf)` returns `(consumed, value)` and raises
  `ValueError` for an incomplete or invalid var-int; `encode_var_int(value)`
  encodes a signed 32-bit integer.
- `idlecraft.client`: `ClientState` (`HANDSHAKE`, `STATUS`, `LOGIN`, `PLAY`,
  with `from_id` / `to_id`), the `Handshake` packet (`encode` / `decode`),
  `Client` (peer address, state and compression threshold), `ClientInfo`
  (with `effective_protocol()`), and protocol constants such as
  `COMPRESSION_THRESHOLD`, `PROTO_DEFAULT_VERSION` and the packet IDs.
- `idlecraft.packet`: `RawPacket` framing with optional zlib compression
  (`encode_with_len`, `encode_without_len`, `decode_with_len`,
  `decode_without_len`), and the async stream helpers `read_packet` and
  `write_packet`. Failures raise `PacketError`.
- `idlecraft.action`: `encode_chat_text(msg)` and `kick(client, msg, writer)`,
  which sends a disconnect in the login or play state and raises `PacketError`
  in any other state.
- `idlecraft.proxy`: `ProxyHeader` (`NONE`, `LOCAL`, `PROXY`), PROXY protocol v2
  headers (`local_proxy_header()`, `stream_proxy_header(peer, local)`), and
  asyncio relaying (`proxy`, `proxy_with_queue`, `relay`).
- `idlecraft.server`: `State`, `ServerSettings`, `ServerStatus`, `Server` and
  `invoke_server_cmd`. `Server` tracks the lifecycle state, last known status,
  activity and start/stop timeouts, starts the server command as a subprocess,
  stops it with SIGTERM (or freezes it with SIGSTOP when `freeze_process` is
  set), and decides when it should sleep (`should_sleep`) or be killed
  (`should_kill`, `force_kill`). Ban lists and whitelists are plugged in as
  objects providing `is_banned(ip)` / `get(ip)` and `is_whitelisted(username)`.
- `idlecraft.style`, `idlecraft.errors`, `idlecraft.prompt`,
  `idlecraft.address`: coloured terminal output, error reporting with
  `ErrorHints`, yes/no prompts (`prompt`, `prompt_yes`, `derive_bool`) and
  `parse_socket_addr(text)` for `host:port` strings.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

Encoding and decoding a packet:

```python
from idlecraft.client import Client
from idlecraft.packet import RawPacket

client = Client.dummy()
raw = RawPacket(0x00, b"\x01\x02").encode_with_len(client)
packet = RawPacket.decode_with_len(client, raw)
assert packet.id == 0x00 and packet.data == b"\x01\x02"
```

After `client.set_compression(256)`, packets whose ID and data are longer than
256 bytes are zlib-compressed on encode; compressed packets are decompressed on
decode.

Managing the server process:

```python
import asyncio
from idlecraft.server import Server, ServerSettings, ServerStatus

async def main():
    settings = ServerSettings(command="java -Xmx2G -jar server.jar --nogui")
    server = Server()
    await server.start(settings, username="steve")

    # Feed in the result of each status poll; None means no response.
    server.update_status(settings, ServerStatus(version_name="1.21.5", protocol=770))

    if server.should_sleep(settings):
        await server.stop(settings)

asyncio.run(main())
```

## What the package does not do

There is no command to run and no configuration file loading. The package does
not listen for player connections itself, does not answer status requests,
does not poll the server's status, watch the server directory for ban or
whitelist changes, keep players in a lobby while the server starts, or stop the
server over RCON. Those parts are left to the application that uses these
building blocks.