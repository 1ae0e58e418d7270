# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Value formatter

Turns decoded EXIF values into the display values shown to the user
("f/2.8", "1/125s", "50 mm", "37° 46' 29.64\\" N") and parses edited
display values back into the numbers the binary layer stores.

Parsing functions raise ValueError on input they cannot interpret.

Copyright 2025 DNAi inc.
"""

import math
import re
from fractions import Fraction
from typing import Any, List, Optional, Tuple, Union

from dnmeta.tag_dictionary import ValueType

DisplayValue = Union[str, int, float]
Rational = Tuple[int, int]

MAX_UINT32 = 0xFFFFFFFF

_DMS_PATTERN = re.compile(
    r"""^\s*(?P<deg>\d+(?:\.\d+)?)\s*°\s*
        (?:(?P<min>\d+(?:\.\d+)?)\s*'\s*)?
        (?:(?P<sec>\d+(?:\.\d+)?)\s*(?:"|'')\s*)?
        (?P<ref>[NSEWnsew])?\s*$""",
    re.VERBOSE,
)
_DECIMAL_PATTERN = re.compile(r'^\s*(?P<value>[+-]?\d+(?:\.\d+)?)\s*(?P<ref>[NSEWnsew])?\s*$')


def _fraction(pair: Any) -> Optional[Fraction]:
    if isinstance(pair, tuple) and len(pair) == 2:
        num, den = pair
        if den == 0:
            return None
        return Fraction(num, den)
    if isinstance(pair, float) and not math.isfinite(pair):
        return None
    if isinstance(pair, (int, float)):
        return Fraction(pair)
    return None


def _trim(value: Union[Fraction, float], places: int = 2) -> str:
    """Format a number with at most `places` decimals and no trailing zeros."""
    text = f"{float(value):.{places}f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


# ----------------------------------------------------------------------
# Display formatting
# ----------------------------------------------------------------------

def format_aperture(pair: Any) -> Optional[str]:
    value = _fraction(_first(pair))
    return f"f/{_trim(value, 1)}" if value is not None else None


def format_exposure(pair: Any) -> Optional[str]:
    value = _fraction(_first(pair))
    if value is None:
        return None
    if 0 < value < 1:
        closest_den = round(1 / value)
        if closest_den and abs(float(value) - 1.0 / closest_den) < 0.001 * float(value) + 1e-9:
            return f"1/{closest_den}s"
        return f"{_trim(value, 4)}s"
    return f"{_trim(value, 1)}s"


def format_focal_length(pair: Any) -> Optional[str]:
    value = _fraction(_first(pair))
    return f"{_trim(value, 1)} mm" if value is not None else None


def format_number(pair: Any) -> Optional[Union[int, float]]:
    value = _fraction(_first(pair))
    if value is None:
        return None
    if value.denominator == 1:
        return value.numerator
    return round(float(value), 4)


def format_gps_coordinate(values: Any, ref: Optional[str]) -> Optional[str]:
    """
    Format a GPS degrees/minutes/seconds triple as text.
    
    Args:
        values: Three (numerator, denominator) pairs
        ref: 'N', 'S', 'E' or 'W'
    """
    if not isinstance(values, list) or len(values) != 3:
        return None
    parts = [_fraction(v) for v in values]
    if any(p is None for p in parts):
        return None
    total = parts[0] + parts[1] / 60 + parts[2] / 3600
    degrees = int(total)
    minutes_total = (total - degrees) * 60
    minutes = int(minutes_total)
    seconds = round((minutes_total - minutes) * 60, 2)
    if seconds >= 60:
        seconds -= 60
        minutes += 1
    if minutes >= 60:
        minutes -= 60
        degrees += 1
    text = f"{degrees}° {minutes}' {_trim(seconds)}\""
    if ref:
        text = f"{text} {ref}"
    return text


def format_gps_altitude(pair: Any, ref: Any) -> Optional[str]:
    value = _fraction(_first(pair))
    if value is None:
        return None
    below_sea_level = ref == 1 or ref == b'\x01'
    return f"{'-' if below_sea_level and value else ''}{_trim(value)} m"


def decode_xp_text(raw: Any) -> Optional[str]:
    """Decode a Windows XP tag (UCS-2 little-endian, NUL terminated)."""
    if isinstance(raw, int):
        raw = bytes([raw])
    if not isinstance(raw, (bytes, bytearray)):
        return None
    if len(raw) % 2:
        raw = raw[:-1]
    return raw.decode('utf-16-le', errors='replace').split('\x00', 1)[0].strip()


def format_value(value_type: ValueType, value: Any, ref: Any = None) -> Optional[DisplayValue]:
    """
    Format a decoded EXIF value for display.
    
    Args:
        value_type: How the field is presented
        value: Decoded value (see tiff_structure.decode_value)
        ref: Decoded companion reference tag for GPS fields
        
    Returns:
        Display value, or None when the value is unusable
    """
    if value is None:
        return None
    if value_type == ValueType.TEXT:
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).split(b'\x00', 1)[0].decode('latin-1')
        text = str(value).strip()
        return text or None
    if value_type == ValueType.XP_TEXT:
        return decode_xp_text(value) or None
    if value_type == ValueType.INTEGER:
        first = _first(value)
        return first if isinstance(first, int) else None
    if value_type == ValueType.RATIONAL:
        return format_number(value)
    if value_type == ValueType.APERTURE:
        return format_aperture(value)
    if value_type == ValueType.EXPOSURE:
        return format_exposure(value)
    if value_type == ValueType.FOCAL_LENGTH:
        return format_focal_length(value)
    if value_type == ValueType.GPS_COORDINATE:
        return format_gps_coordinate(value, ref if isinstance(ref, str) else None)
    if value_type == ValueType.GPS_ALTITUDE:
        return format_gps_altitude(value, ref)
    return None


# ----------------------------------------------------------------------
# Parsing edited values
# ----------------------------------------------------------------------

def to_rational(value: Fraction, max_denominator: int = 10000) -> Rational:
    value = value.limit_denominator(max_denominator)
    if value < 0:
        raise ValueError("negative values are not allowed")
    if value.numerator > MAX_UINT32 or value.denominator > MAX_UINT32:
        raise ValueError("value out of range")
    return value.numerator, value.denominator


def _parse_fraction(text: Any) -> Fraction:
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        if isinstance(text, float) and not math.isfinite(text):
            raise ValueError("value must be finite")
        return Fraction(text)
    stripped = str(text).strip()
    if not stripped:
        raise ValueError("empty value")
    try:
        return Fraction(stripped)
    except ZeroDivisionError as e:
        raise ValueError("denominator must not be zero") from e


def parse_integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("expected an integer")
        return int(value)
    return int(str(value).strip())


def parse_rational(value: Any) -> Rational:
    return to_rational(_parse_fraction(value))


def parse_aperture(value: Any) -> Rational:
    text = str(value).strip()
    text = re.sub(r'^[fF]\s*/?\s*', '', text)
    return to_rational(_parse_fraction(text))


def parse_exposure(value: Any) -> Rational:
    text = str(value).strip()
    text = re.sub(r'\s*(s|sec|seconds?)$', '', text, flags=re.IGNORECASE)
    fraction = _parse_fraction(text)
    if fraction.numerator == 1 or fraction.denominator == 1:
        return to_rational(fraction, MAX_UINT32)
    return to_rational(fraction)


def parse_focal_length(value: Any) -> Rational:
    text = re.sub(r'\s*mm$', '', str(value).strip(), flags=re.IGNORECASE)
    return to_rational(_parse_fraction(text))


def parse_gps_coordinate(value: Any, positive_ref: str, negative_ref: str,
                         limit: int) -> Tuple[str, List[Rational]]:
    """
    Parse a coordinate given as D° M' S" [ref] or as signed decimal degrees.
    
    Returns:
        (reference letter, [degrees, minutes, seconds] as rationals)
    """
    text = str(value).strip()
    match = _DMS_PATTERN.match(text)
    if match:
        degrees = Fraction(match.group('deg'))
        minutes = Fraction(match.group('min') or 0)
        seconds = Fraction(match.group('sec') or 0)
        ref = (match.group('ref') or positive_ref).upper()
        total = degrees + minutes / 60 + seconds / 3600
    else:
        match = _DECIMAL_PATTERN.match(text)
        if not match:
            raise ValueError("expected D° M' S\" or decimal degrees")
        total = Fraction(match.group('value'))
        ref = (match.group('ref') or '').upper()
        if total < 0:
            total = -total
            ref = negative_ref if ref in ('', positive_ref) else positive_ref
        elif not ref:
            ref = positive_ref

    if ref not in (positive_ref, negative_ref):
        raise ValueError(f"reference must be {positive_ref} or {negative_ref}")
    if total > limit:
        raise ValueError(f"coordinate exceeds {limit} degrees")

    degrees = int(total)
    minutes_total = (total - degrees) * 60
    minutes = int(minutes_total)
    seconds = ((minutes_total - minutes) * 60).limit_denominator(100)
    if seconds >= 60:
        seconds -= 60
        minutes += 1
    if minutes >= 60:
        minutes -= 60
        degrees += 1
    return ref, [(degrees, 1), (minutes, 1), to_rational(seconds, 100)]


def parse_gps_altitude(value: Any) -> Tuple[int, Rational]:
    """
    Returns:
        (reference: 0 above / 1 below sea level, altitude as rational)
    """
    text = re.sub(r'\s*m$', '', str(value).strip(), flags=re.IGNORECASE)
    altitude = _parse_fraction(text)
    ref = 0
    if altitude < 0:
        ref = 1
        altitude = -altitude
    return ref, to_rational(altitude, 100)


def encode_xp_text(text: str) -> bytes:
    return str(text).encode('utf-16-le') + b'\x00\x00'
