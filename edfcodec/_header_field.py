from __future__ import annotations

import datetime
import math
import re

from edfcodec.errors import FieldOverflowError, NumericParseError

_one_or_two_digits = "([ ]?\\d{1,2})"
_separator = "[.:'\\-\\/ ]"
DATE_OR_TIME_PATTERN = re.compile(
    f"""
        {_one_or_two_digits}  # day/hour
        {_separator}
        {_one_or_two_digits}  # month/minute
        {_separator}
        {_one_or_two_digits}  # year/second
        """,
    re.VERBOSE,
)


def encode_str(value: str, length: int) -> bytes:
    if len(value) > length:
        raise FieldOverflowError(
            f"{value!r} exceeds maximum field length: {len(value)} > {length}"
        )
    if not value.isprintable() or not value.isascii():
        raise ValueError(f"{value!r} contains non-printable or non-ASCII characters")
    return value.encode("ascii").ljust(length)


def decode_str(field: bytes, encoding: str = "ascii") -> str:
    return field.decode(encoding, errors="replace")


def encode_int(value: int, length: int) -> bytes:
    return encode_str(str(int(value)), length)


def decode_int(field: bytes, name: str) -> int:
    text = field.decode("ascii", errors="replace").strip()
    try:
        if "_" in text:
            raise ValueError(text)
        return int(text)
    except ValueError:
        raise NumericParseError(
            f"Header field {name} is not an integer: {text!r}"
        ) from None


def _fixed_point(value: float, length: int) -> str:
    integer_part_length = len(str(int(abs(value)))) + (value < 0)
    for decimals in range(max(length - integer_part_length - 1, 0), -1, -1):
        text = f"{value:.{decimals}f}"
        if decimals:
            text = text.rstrip("0").rstrip(".")
        if text == "-0":
            text = "0"
        if len(text) <= length:
            return text
    raise FieldOverflowError(
        f"{value!r} exceeds maximum field length: {integer_part_length} > {length}"
    )


def encode_float(value: float, length: int = 8) -> bytes:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Header field value must be finite, got {value}")
    if value.is_integer():
        return encode_int(int(value), length)
    text = repr(value)
    if len(text) > length or "e" in text:
        text = _fixed_point(value, length)
    return encode_str(text, length)


def decode_float(field: bytes, name: str) -> float:
    text = field.decode("ascii", errors="replace").strip()
    try:
        if "_" in text:
            raise ValueError(text)
        value = float(text)
    except ValueError:
        raise NumericParseError(
            f"Header field {name} is not a number: {text!r}"
        ) from None
    if math.isinf(value) or math.isnan(value):
        raise NumericParseError(
            f"Header field {name} is outside float range: {text!r}"
        )
    return value


def decode_date(value: str) -> datetime.date:
    date = value.strip()
    match = DATE_OR_TIME_PATTERN.fullmatch(date)
    if match is None:
        raise ValueError(f"Invalid date for format DD.MM.YY: {date!r}")
    day, month, year = (int(g) for g in match.groups())
    if year >= 85:  # noqa: PLR2004
        year += 1900
    else:
        year += 2000
    return datetime.date(year, month, day)


def encode_date(value: datetime.date) -> str:
    if not 1985 <= value.year <= 2084:  # noqa: PLR2004
        raise ValueError("EDF only allows dates from 1985 to 2084")
    return value.strftime("%d.%m.%y")


def decode_time(value: str) -> datetime.time:
    time = value.strip()
    match = DATE_OR_TIME_PATTERN.fullmatch(time)
    if match is None:
        raise ValueError(f"Invalid time for format hh.mm.ss: {time!r}")
    hours, minutes, seconds = (int(g) for g in match.groups())
    return datetime.time(hours, minutes, seconds)


def encode_time(value: datetime.time) -> str:
    return value.replace(microsecond=0).isoformat().replace(":", ".")
