import pytest
from relic.core.errors import MismatchError

from meiunpack.native.fields import FieldReader

_BUFFER = bytes([0x00, 0x00, 0x01, 0x02, 0xFF, 0x12, 0x34, 0x56, 0x78])


def test_u32_is_big_endian():
    fields = FieldReader(_BUFFER)
    assert fields.u32(0) == 0x0102
    assert fields.u32(5) == 0x12345678


def test_u8():
    fields = FieldReader(_BUFFER)
    assert fields.u8(4) == 0xFF


def test_window_offsets_are_relative():
    fields = FieldReader(_BUFFER).window(4)
    assert len(fields) == 5
    assert fields.u8(0) == 0xFF
    assert fields.u32(1) == 0x12345678
    assert fields.raw(1, 2) == b"\x12\x34"


@pytest.mark.parametrize(
    ["offset", "size"], [(6, 4), (9, 1), (-1, 1), (0, len(_BUFFER) + 1)]
)
def test_out_of_bounds(offset: int, size: int):
    fields = FieldReader(_BUFFER)
    with pytest.raises(MismatchError):
        fields.raw(offset, size)
