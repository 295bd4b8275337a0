"""Camera settings: enumerations and the 48-byte settings record.

Record layout (byte offsets)::

    +-----+--------------------+------------------------------------------+
    | Off | Field              | Encoding                                 |
    +-----+--------------------+------------------------------------------+
    |   2 | photo resolution   | PhotoResolution code                     |
    |   3 | video resolution   | VideoResolution code                     |
    |   6 | EV compensation    | EvValue code                             |
    |   7 | white balance      | WhiteBalance code                        |
    | 10  | year               | u16 little-endian                        |
    | 12  | month              | u8                                       |
    | 13  | day                | u8                                       |
    | 14  | hour               | u8                                       |
    | 15  | minute             | u8                                       |
    | 16  | second             | u8                                       |
    | 18  | milliseconds       | u16 little-endian                        |
    |  32 | filter             | FilterValue code                         |
    |  35 | bitrate            | Bitrate code                             |
    |  39 | logo type          | LogoType code                            |
    +-----+--------------------+------------------------------------------+

All other bytes are zero when encoding and ignored when decoding.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from enum import IntEnum
from typing import ClassVar

from ..errors import InvalidFormatError, InvalidLengthError

SETTINGS_SIZE = 48
SETTINGS_MIN_SIZE = 40

OFF_PHOTO_RESOLUTION = 2
OFF_VIDEO_RESOLUTION = 3
OFF_EV = 6
OFF_WHITE_BALANCE = 7
OFF_YEAR = 10             # 2 bytes (little-endian)
OFF_MONTH = 12
OFF_DAY = 13
OFF_HOUR = 14
OFF_MINUTE = 15
OFF_SECOND = 16
OFF_MILLISECOND = 18      # 2 bytes (little-endian)
OFF_FILTER = 32
OFF_BITRATE = 35
OFF_LOGO_TYPE = 39


class LiveViewResolution(IntEnum):
    """Live view stream resolution."""

    LOW = 10   # 1280 x 640
    HIGH = 9   # 1920 x 960

    @property
    def width(self) -> int:
        return 1920 if self is LiveViewResolution.HIGH else 1280

    @property
    def height(self) -> int:
        return 960 if self is LiveViewResolution.HIGH else 640


class PictureOrientation(IntEnum):
    """Spherical picture orientation."""

    DEG_0 = 2
    DEG_90 = 3
    DEG_180 = 0
    DEG_270 = 1


class PhotoResolution(IntEnum):
    HIGH = 3   # 5376 x 2688
    LOW = 4    # 3840 x 1920

    @property
    def width(self) -> int:
        return 5376 if self is PhotoResolution.HIGH else 3840

    @property
    def height(self) -> int:
        return 2688 if self is PhotoResolution.HIGH else 1920


class VideoResolution(IntEnum):
    HIGH = 9      # 1920 x 960
    LOW = 10      # 1280 x 640
    UNKNOWN = 11  # undocumented, reported as 1280 x 640

    @property
    def width(self) -> int:
        return 1920 if self is VideoResolution.HIGH else 1280

    @property
    def height(self) -> int:
        return 960 if self is VideoResolution.HIGH else 640


class EvValue(IntEnum):
    """Exposure value compensation."""

    NONE = 0
    NEG_2 = 1
    NEG_1_67 = 2
    NEG_1_33 = 3
    NEG_1 = 4
    NEG_0_67 = 5
    NEG_0_33 = 6
    POS_0_33 = 7
    POS_0_67 = 8
    POS_1 = 9
    POS_1_33 = 10
    POS_1_67 = 11
    POS_2 = 12


class WhiteBalance(IntEnum):
    AUTO = 0
    SUNNY = 1
    CLOUDY = 2
    TUNGSTEN = 3
    FLUORESCENT = 4


class FilterValue(IntEnum):
    """Color filter applied by the camera."""

    NONE = 0
    FADED = 1
    NIMBUS = 2
    TEA = 3
    TWILIGHT = 4
    SAPPHIRE = 5
    VINTAGE = 6
    GREYSCALE = 7
    NEWSPAPER = 8


class LogoType(IntEnum):
    """Logo superimposed on pictures."""

    NONE = 0
    HUAWEI_LOGO = 1


class Bitrate(IntEnum):
    UNSET = 0
    BITRATE_0 = 4
    BITRATE_1 = 8
    BITRATE_2 = 16


class SettingType(IntEnum):
    """Identifiers for single-setting reads and writes."""

    PHOTO_RESOLUTION = 3
    VIDEO_RESOLUTION = 4
    EV_BALANCE = 7
    WHITE_BALANCE = 8
    FILTER = 9
    BITRATE = 12
    SHUTTER_TIME = 16
    LOGO_TYPE = 17


def signed_byte(value: int) -> int:
    """Interpret an unsigned byte as a signed 8-bit value."""
    return value - 256 if value >= 128 else value


def decode_code(enum_cls: type[IntEnum], value: int) -> IntEnum:
    """Map a raw settings byte onto ``enum_cls``.

    Raises:
        InvalidFormatError: If the byte is not a known code.
    """
    try:
        return enum_cls(signed_byte(value))
    except ValueError:
        raise InvalidFormatError(
            f"Unknown {enum_cls.__name__} code: {value}"
        ) from None


def _default_date_time() -> datetime.datetime:
    return datetime.datetime(1970, 1, 1)


@dataclass
class CamSettings:
    """The camera's full configuration record."""

    TOTAL_SIZE: ClassVar[int] = SETTINGS_SIZE

    photo_resolution: PhotoResolution = PhotoResolution.LOW
    video_resolution: VideoResolution = VideoResolution.LOW
    ev: EvValue = EvValue.NONE
    white_balance: WhiteBalance = WhiteBalance.AUTO
    date_time: datetime.datetime = field(default_factory=_default_date_time)
    filter: FilterValue = FilterValue.NONE
    bitrate: Bitrate = Bitrate.UNSET
    logo_type: LogoType = LogoType.NONE

    def to_bytes(self) -> bytes:
        """Serialize to the 48-byte on-wire record."""
        buf = bytearray(SETTINGS_SIZE)

        buf[OFF_PHOTO_RESOLUTION] = self.photo_resolution & 0xFF
        buf[OFF_VIDEO_RESOLUTION] = self.video_resolution & 0xFF
        buf[OFF_EV] = self.ev & 0xFF
        buf[OFF_WHITE_BALANCE] = self.white_balance & 0xFF

        dt = self.date_time
        buf[OFF_YEAR : OFF_YEAR + 2] = dt.year.to_bytes(2, "little")
        buf[OFF_MONTH] = dt.month
        buf[OFF_DAY] = dt.day
        buf[OFF_HOUR] = dt.hour
        buf[OFF_MINUTE] = dt.minute
        buf[OFF_SECOND] = dt.second
        millis = dt.microsecond // 1000
        buf[OFF_MILLISECOND : OFF_MILLISECOND + 2] = millis.to_bytes(2, "little")

        buf[OFF_FILTER] = self.filter & 0xFF
        buf[OFF_BITRATE] = self.bitrate & 0xFF
        buf[OFF_LOGO_TYPE] = self.logo_type & 0xFF

        return bytes(buf)

    @classmethod
    def from_bytes(cls, data: bytes) -> CamSettings:
        """Deserialize a settings record.

        Raises:
            InvalidLengthError: If fewer than 40 bytes were supplied.
            InvalidFormatError: On an unknown enumeration code or an
                invalid calendar date/time.
        """
        if len(data) < SETTINGS_MIN_SIZE:
            raise InvalidLengthError(SETTINGS_MIN_SIZE, len(data))

        year = int.from_bytes(data[OFF_YEAR : OFF_YEAR + 2], "little")
        millis = int.from_bytes(data[OFF_MILLISECOND : OFF_MILLISECOND + 2], "little")
        try:
            date_time = datetime.datetime(
                year,
                data[OFF_MONTH],
                data[OFF_DAY],
                data[OFF_HOUR],
                data[OFF_MINUTE],
                data[OFF_SECOND],
                millis * 1000,
            )
        except ValueError as e:
            raise InvalidFormatError(f"Invalid date/time in settings: {e}") from e

        return cls(
            photo_resolution=decode_code(PhotoResolution, data[OFF_PHOTO_RESOLUTION]),
            video_resolution=decode_code(VideoResolution, data[OFF_VIDEO_RESOLUTION]),
            ev=decode_code(EvValue, data[OFF_EV]),
            white_balance=decode_code(WhiteBalance, data[OFF_WHITE_BALANCE]),
            date_time=date_time,
            filter=decode_code(FilterValue, data[OFF_FILTER]),
            bitrate=decode_code(Bitrate, data[OFF_BITRATE]),
            logo_type=decode_code(LogoType, data[OFF_LOGO_TYPE]),
        )

    def to_dict(self) -> dict:
        return {
            "photo_resolution": self.photo_resolution.name.lower(),
            "video_resolution": self.video_resolution.name.lower(),
            "ev": self.ev.name.lower(),
            "white_balance": self.white_balance.name.lower(),
            "date_time": self.date_time.isoformat(timespec="milliseconds"),
            "filter": self.filter.name.lower(),
            "bitrate": self.bitrate.name.lower(),
            "logo_type": self.logo_type.name.lower(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> CamSettings:
        """Build settings from ``to_dict`` output; missing keys keep defaults.

        Raises:
            ValueError: On an unknown key, an unknown option name or a
                malformed date/time.
        """
        unknown = sorted(set(data) - set(_DICT_FIELDS) - {"date_time"})
        if unknown:
            raise ValueError(
                f"Unknown settings {unknown}. Valid: {[*_DICT_FIELDS, 'date_time']}"
            )

        settings = cls()
        for key, enum_cls in _DICT_FIELDS.items():
            if key in data:
                name = str(data[key]).upper()
                if name not in enum_cls.__members__:
                    raise ValueError(
                        f"Unknown {key} '{data[key]}'. "
                        f"Valid: {[m.lower() for m in enum_cls.__members__]}"
                    )
                setattr(settings, key, enum_cls[name])
        if "date_time" in data:
            value = data["date_time"]
            if not isinstance(value, str):
                raise ValueError(f"date_time must be an ISO 8601 string, got {value!r}")
            settings.date_time = datetime.datetime.fromisoformat(value)
        return settings


_DICT_FIELDS: dict[str, type[IntEnum]] = {
    "photo_resolution": PhotoResolution,
    "video_resolution": VideoResolution,
    "ev": EvValue,
    "white_balance": WhiteBalance,
    "filter": FilterValue,
    "bitrate": Bitrate,
    "logo_type": LogoType,
}
