"""Tests for the 48-byte settings record."""

import datetime
import itertools

import pytest

from cv60_mcp.errors import InvalidFormatError, InvalidLengthError
from cv60_mcp.models.settings import (
    Bitrate,
    CamSettings,
    EvValue,
    FilterValue,
    LogoType,
    PhotoResolution,
    SETTINGS_SIZE,
    VideoResolution,
    WhiteBalance,
)

DATE = datetime.datetime(2024, 2, 29, 23, 59, 58, 123000)


def _settings(**overrides) -> CamSettings:
    values = dict(
        photo_resolution=PhotoResolution.HIGH,
        video_resolution=VideoResolution.HIGH,
        ev=EvValue.NEG_1_33,
        white_balance=WhiteBalance.FLUORESCENT,
        date_time=DATE,
        filter=FilterValue.VINTAGE,
        bitrate=Bitrate.BITRATE_2,
        logo_type=LogoType.HUAWEI_LOGO,
    )
    values.update(overrides)
    return CamSettings(**values)


def test_to_bytes_size_and_offsets():
    data = _settings().to_bytes()
    assert len(data) == SETTINGS_SIZE
    assert data[2] == 3
    assert data[3] == 9
    assert data[6] == 3
    assert data[7] == 4
    assert data[10:12] == (2024).to_bytes(2, "little")
    assert data[12:17] == bytes([2, 29, 23, 59, 58])
    assert data[18:20] == (123).to_bytes(2, "little")
    assert data[32] == 6
    assert data[35] == 16
    assert data[39] == 1


def test_to_bytes_undocumented_offsets_are_zero():
    data = _settings().to_bytes()
    documented = {2, 3, 6, 7, 10, 11, 12, 13, 14, 15, 16, 18, 19, 32, 35, 39}
    for i, byte in enumerate(data):
        if i not in documented:
            assert byte == 0, f"offset {i}"


def test_roundtrip():
    settings = _settings()
    assert CamSettings.from_bytes(settings.to_bytes()) == settings


def test_roundtrip_all_enum_values():
    """Every code of every field survives encoding."""
    for photo, video, logo in itertools.product(PhotoResolution, VideoResolution, LogoType):
        s = _settings(photo_resolution=photo, video_resolution=video, logo_type=logo)
        assert CamSettings.from_bytes(s.to_bytes()) == s
    for ev in EvValue:
        s = _settings(ev=ev)
        assert CamSettings.from_bytes(s.to_bytes()) == s
    for wb, flt, rate in itertools.product(WhiteBalance, FilterValue, Bitrate):
        s = _settings(white_balance=wb, filter=flt, bitrate=rate)
        assert CamSettings.from_bytes(s.to_bytes()) == s


def test_encoding_drops_sub_millisecond_precision():
    s = _settings(date_time=datetime.datetime(2020, 1, 1, 0, 0, 0, 999999))
    restored = CamSettings.from_bytes(s.to_bytes())
    assert restored.date_time.microsecond == 999000


def test_from_bytes_accepts_40_bytes():
    data = _settings().to_bytes()[:40]
    assert CamSettings.from_bytes(data) == _settings()


def test_from_bytes_too_short():
    with pytest.raises(InvalidLengthError) as excinfo:
        CamSettings.from_bytes(b"\x00" * 39)
    assert excinfo.value.expected == 40
    assert excinfo.value.received == 39
    # short buffers are a format error too
    assert isinstance(excinfo.value, InvalidFormatError)


@pytest.mark.parametrize("offset, value", [(2, 5), (3, 8), (6, 13), (7, 5), (32, 9), (35, 1), (39, 2)])
def test_from_bytes_unknown_code(offset, value):
    data = bytearray(_settings().to_bytes())
    data[offset] = value
    with pytest.raises(InvalidFormatError):
        CamSettings.from_bytes(bytes(data))


@pytest.mark.parametrize("offset, value", [(12, 13), (13, 32), (14, 24), (15, 60), (16, 60)])
def test_from_bytes_invalid_date_time(offset, value):
    data = bytearray(_settings().to_bytes())
    data[offset] = value
    with pytest.raises(InvalidFormatError):
        CamSettings.from_bytes(bytes(data))


def test_from_bytes_invalid_calendar_date():
    """February 30th is rejected."""
    data = bytearray(_settings().to_bytes())
    data[13] = 30
    with pytest.raises(InvalidFormatError):
        CamSettings.from_bytes(bytes(data))


def test_from_bytes_all_zero_year_rejected():
    with pytest.raises(InvalidFormatError):
        CamSettings.from_bytes(b"\x00" * SETTINGS_SIZE)


def test_defaults():
    s = CamSettings()
    assert s.photo_resolution is PhotoResolution.LOW
    assert s.video_resolution is VideoResolution.LOW
    assert s.date_time == datetime.datetime(1970, 1, 1)
    assert CamSettings.from_bytes(s.to_bytes()) == s


def test_dict_roundtrip():
    settings = _settings()
    d = settings.to_dict()
    assert d["photo_resolution"] == "high"
    assert d["white_balance"] == "fluorescent"
    assert d["date_time"] == "2024-02-29T23:59:58.123"
    assert CamSettings.from_dict(d) == settings


def test_from_dict_unknown_value():
    with pytest.raises(ValueError):
        CamSettings.from_dict({"filter": "sepia"})


def test_from_dict_unknown_key():
    with pytest.raises(ValueError, match="brightness"):
        CamSettings.from_dict({"brightness": "high"})


@pytest.mark.parametrize("value", [1714564800, None, ["2024-05-01"]])
def test_from_dict_non_string_date_time(value):
    with pytest.raises(ValueError):
        CamSettings.from_dict({"date_time": value})


def test_from_dict_malformed_date_time():
    with pytest.raises(ValueError):
        CamSettings.from_dict({"date_time": "yesterday"})


def test_resolution_dimensions():
    assert (PhotoResolution.HIGH.width, PhotoResolution.HIGH.height) == (5376, 2688)
    assert (VideoResolution.UNKNOWN.width, VideoResolution.UNKNOWN.height) == (1280, 640)
