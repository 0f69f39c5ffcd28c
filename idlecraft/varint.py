"""Variable-length integer encoding as used by the Minecraft protocol."""

_MAX_BYTES = 5
_CONTINUE_BIT = 0x80
_SEGMENT_BITS = 0x7F
_I32_MIN = -(1 << 31)
_I32_MAX = (1 << 31) - 1


def read_var_int(buf):
    """Read a var-int from the start of ``buf``.

    Returns ``(consumed, value)``. Raises ``ValueError`` if the buffer does not
    start with a complete, valid var-int.
    """
    head = bytes(buf[:_MAX_BYTES])
    for length, byte in enumerate(head, start=1):
        if byte & _CONTINUE_BIT:
            continue
        value = 0
        for shift, part in enumerate(head[:length]):
            value |= (part & _SEGMENT_BITS) << (7 * shift)
        value &= 0xFFFFFFFF
        if value > _I32_MAX:
            value -= 1 << 32
        return length, value
    raise ValueError("incomplete or invalid var-int")


def encode_var_int(value):
    """Encode a signed 32-bit integer as a var-int."""
    if not _I32_MIN <= value <= _I32_MAX:
        raise ValueError(f"value {value} does not fit in a 32-bit var-int")
    remaining = value & 0xFFFFFFFF
    out = bytearray()
    while True:
        byte = remaining & _SEGMENT_BITS
        remaining >>= 7
        if remaining:
            out.append(byte | _CONTINUE_BIT)
        else:
            out.append(byte)
            return bytes(out)