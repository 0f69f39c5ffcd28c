import pytest

from idlecraft.varint import encode_var_int, read_var_int


@pytest.mark.parametrize(
    "value", [0, 1, 127, 128, 255, 300, 25565, 2**31 - 1, -1, -(2**31), -12345]
)
def test_round_trip(value):
    encoded = encode_var_int(value)
    assert read_var_int(encoded) == (len(encoded), value)


def test_known_encoding_of_300():
    assert encode_var_int(300) == b"\xac\x02"


def test_negative_uses_five_bytes():
    assert encode_var_int(-1) == b"\xff\xff\xff\xff\x0f"


def test_read_max_i32():
    assert read_var_int(b"\xff\xff\xff\xff\x07") == (5, 2**31 - 1)


def test_read_ignores_trailing_data():
    encoded = encode_var_int(25565)
    consumed, value = read_var_int(encoded + b"rest of packet")
    assert consumed == len(encoded)
    assert value == 25565


def test_read_accepts_bytearray_and_memoryview():
    encoded = encode_var_int(770)
    assert read_var_int(bytearray(encoded)) == read_var_int(memoryview(encoded))
    assert read_var_int(bytearray(encoded))[1] == 770


def test_read_empty_raises():
    with pytest.raises(ValueError):
        read_var_int(b"")


def test_read_incomplete_raises():
    with pytest.raises(ValueError):
        read_var_int(b"\x80\x80")


def test_read_too_long_raises():
    with pytest.raises(ValueError):
        read_var_int(b"\xff\xff\xff\xff\xff\x01")


@pytest.mark.parametrize("value", [2**31, -(2**31) - 1])
def test_encode_out_of_range_raises(value):
    with pytest.raises(ValueError):
        encode_var_int(value)


def test_encoded_length_never_exceeds_five():
    for value in (0, 1 << 7, 1 << 14, 1 << 21, 1 << 28, -(2**31)):
        assert 1 <= len(encode_var_int(value)) <= 5