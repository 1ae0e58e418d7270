# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
EXIF tag definitions

TIFF field types, IFD group names and the structural tag codes that link
the IFDs of an EXIF block together. Field-level tags that are presented to
the user live in the tag dictionary; this module only covers what the
binary layer itself needs to know.

Copyright 2025 DNAi inc.
"""

from enum import IntEnum


class ExifTagType(IntEnum):
    """TIFF field data types"""
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10
    FLOAT = 11
    DOUBLE = 12


# Field type sizes in bytes
TAG_SIZES = {
    ExifTagType.BYTE: 1,
    ExifTagType.ASCII: 1,
    ExifTagType.SHORT: 2,
    ExifTagType.LONG: 4,
    ExifTagType.RATIONAL: 8,
    ExifTagType.SBYTE: 1,
    ExifTagType.UNDEFINED: 1,
    ExifTagType.SSHORT: 2,
    ExifTagType.SLONG: 4,
    ExifTagType.SRATIONAL: 8,
    ExifTagType.FLOAT: 4,
    ExifTagType.DOUBLE: 8,
}


# IFD groups, in the order they are laid out when an EXIF block is rebuilt
IFD0 = 'IFD0'
EXIF_IFD = 'Exif'
INTEROP_IFD = 'Interop'
GPS_IFD = 'GPS'
IFD1 = 'IFD1'

IFD_GROUPS = (IFD0, EXIF_IFD, INTEROP_IFD, GPS_IFD, IFD1)

# Pointer tags: parent group, tag code -> child group
EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825
INTEROP_IFD_POINTER = 0xA005

POINTER_TAGS = {
    (IFD0, EXIF_IFD_POINTER): EXIF_IFD,
    (IFD0, GPS_IFD_POINTER): GPS_IFD,
    (EXIF_IFD, INTEROP_IFD_POINTER): INTEROP_IFD,
}

# Embedded JPEG thumbnail in IFD1
JPEG_INTERCHANGE_FORMAT = 0x0201
JPEG_INTERCHANGE_FORMAT_LENGTH = 0x0202

# Tags written when a sub-IFD has to be created from scratch
EXIF_VERSION = 0x9000
GPS_VERSION_ID = 0x0000

# GPS reference tags, keyed by the value tag they qualify
GPS_REF_TAGS = {
    0x0002: 0x0001,  # GPSLatitude -> GPSLatitudeRef
    0x0004: 0x0003,  # GPSLongitude -> GPSLongitudeRef
    0x0006: 0x0005,  # GPSAltitude -> GPSAltitudeRef
}

# Names for the tags the editor knows about, used in log messages
EXIF_TAG_NAMES = {
    0x0001: "GPSLatitudeRef",
    0x0002: "GPSLatitude",
    0x0003: "GPSLongitudeRef",
    0x0004: "GPSLongitude",
    0x0005: "GPSAltitudeRef",
    0x0006: "GPSAltitude",
    0x010E: "ImageDescription",
    0x010F: "Make",
    0x0110: "Model",
    0x0112: "Orientation",
    0x011A: "XResolution",
    0x011B: "YResolution",
    0x0131: "Software",
    0x0132: "DateTime",
    0x013B: "Artist",
    0x0201: "JPEGInterchangeFormat",
    0x0202: "JPEGInterchangeFormatLength",
    0x8298: "Copyright",
    0x829A: "ExposureTime",
    0x829D: "FNumber",
    0x8769: "ExifOffset",
    0x8825: "GPSInfo",
    0x8827: "ISOSpeedRatings",
    0x9000: "ExifVersion",
    0x9003: "DateTimeOriginal",
    0x9209: "Flash",
    0x920A: "FocalLength",
    0x9C9B: "XPTitle",
    0x9C9E: "XPKeywords",
    0xA001: "ColorSpace",
    0xA002: "PixelXDimension",
    0xA003: "PixelYDimension",
    0xA005: "InteropOffset",
    0xA434: "LensModel",
}


def tag_name(tag_id: int) -> str:
    """Return a printable name for a tag code."""
    return EXIF_TAG_NAMES.get(tag_id, f"0x{tag_id:04X}")
