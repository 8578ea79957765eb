import pytest

from meiunpack.definitions import CookieLayout
from meiunpack.errors import ErrorKind, TocBoundsInvalidError
from meiunpack.native.definitions import CookieHeader
from meiunpack.native.layout import resolve_layout


def _header(package_length: int, toc_offset: int, toc_length: int, position: int = 912):
    return CookieHeader(
        position=position,
        layout=CookieLayout.V1,
        package_length=package_length,
        toc_offset=toc_offset,
        toc_length=toc_length,
        python_version_code=311,
    )


def test_cookie_at_end_of_file():
    layout = resolve_layout(_header(500, 400, 12), 1000)
    assert layout.cookie_position == 912
    assert layout.overlay_size == 500
    assert layout.overlay_position == 500
    assert layout.toc_position == 900
    assert layout.toc_size == 12
    assert not layout.used_fallback


@pytest.mark.parametrize("trailer", [1, 100, 4096])
def test_trailing_bytes_belong_to_the_overlay(trailer: int):
    layout = resolve_layout(_header(500, 400, 12), 1000 + trailer)
    assert layout.overlay_size == 500 + trailer
    assert layout.overlay_position == 500
    assert layout.toc_position == 900
    assert not layout.used_fallback


def test_toc_may_end_at_end_of_file():
    layout = resolve_layout(_header(500, 412, 88), 1000)
    assert layout.toc_position == 912
    assert not layout.used_fallback


@pytest.mark.parametrize("package_length", [2000, 0xFFFFFFFF])
def test_fallback_when_primary_is_out_of_bounds(package_length: int):
    layout = resolve_layout(_header(package_length, 0, 100), 1100)
    assert layout.used_fallback
    assert layout.toc_position == 912 + 88
    assert layout.toc_size == 100


@pytest.mark.parametrize(
    ["package_length", "toc_offset", "toc_length"],
    [(500, 400, 5000), (2000, 0, 101), (500, 0xFFFFFF00, 10)],
)
def test_toc_bounds_invalid(package_length: int, toc_offset: int, toc_length: int):
    with pytest.raises(TocBoundsInvalidError) as info:
        resolve_layout(_header(package_length, toc_offset, toc_length), 1100)
    assert info.value.kind is ErrorKind.TOC_BOUNDS_INVALID
    assert info.value.fatal
