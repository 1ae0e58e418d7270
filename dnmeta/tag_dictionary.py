# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Tag dictionary

Static, bidirectional mapping between binary-format tag identifiers and the
fields shown to the user. EXIF tags are identified by (IFD group, tag code),
ID3 frames by their frame ID. Both namespaces may contribute fields to the
'basic' category, so every lookup is qualified by namespace.

The tables are built once at import time and exposed read-only.

Copyright 2025 DNAi inc.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

from dnmeta.exif_tags import EXIF_IFD, GPS_IFD, IFD0


class ValueType(Enum):
    """How a field's value is displayed and coerced back to binary."""
    TEXT = "text"
    XP_TEXT = "xp_text"              # UCS-2 text in a BYTE array (Windows XP tags)
    INTEGER = "integer"
    RATIONAL = "rational"
    APERTURE = "aperture"            # "f/2.8"
    EXPOSURE = "exposure"            # "1/125s"
    FOCAL_LENGTH = "focal_length"    # "50 mm"
    GPS_COORDINATE = "gps_coordinate"
    GPS_ALTITUDE = "gps_altitude"


# Namespaces
EXIF = 'exif'
ID3 = 'id3'
STREAM = 'stream'

# Categories
BASIC = 'basic'
CAMERA = 'camera'
LOCATION = 'location'
TECHNICAL = 'technical'
AUDIO = 'audio'
CUSTOM = 'custom'

CATEGORIES = (BASIC, CAMERA, LOCATION, TECHNICAL, AUDIO, CUSTOM)

ExternalTagId = Union[Tuple[str, int], str]


@dataclass(frozen=True)
class TagDescriptor:
    """A single dictionary entry."""
    namespace: str
    external_id: ExternalTagId
    key: str
    label: str
    category: str
    value_type: ValueType = ValueType.TEXT
    editable: bool = True


def _exif(group: str, code: int, key: str, label: str, category: str,
          value_type: ValueType = ValueType.TEXT, editable: bool = True) -> TagDescriptor:
    return TagDescriptor(EXIF, (group, code), key, label, category, value_type, editable)


def _id3(frame_id: str, key: str, label: str, category: str = BASIC) -> TagDescriptor:
    return TagDescriptor(ID3, frame_id, key, label, category)


def _stream(key: str, label: str) -> TagDescriptor:
    return TagDescriptor(STREAM, key, key, label, AUDIO, ValueType.TEXT, editable=False)


EXIF_ENTRIES = (
    # basic
    _exif(IFD0, 0x9C9B, 'title', 'Title', BASIC, ValueType.XP_TEXT),
    _exif(IFD0, 0x010E, 'description', 'Description', BASIC),
    _exif(IFD0, 0x9C9E, 'keywords', 'Keywords', BASIC, ValueType.XP_TEXT),
    _exif(IFD0, 0x013B, 'artist', 'Artist', BASIC),
    _exif(IFD0, 0x8298, 'copyright', 'Copyright', BASIC),
    _exif(IFD0, 0x0131, 'software', 'Software', BASIC),
    _exif(EXIF_IFD, 0x9003, 'dateTaken', 'Date Taken', BASIC),
    _exif(IFD0, 0x0132, 'dateModified', 'Date Modified', BASIC),
    # camera
    _exif(IFD0, 0x010F, 'make', 'Camera Make', CAMERA),
    _exif(IFD0, 0x0110, 'model', 'Camera Model', CAMERA),
    _exif(EXIF_IFD, 0xA434, 'lens', 'Lens', CAMERA),
    _exif(EXIF_IFD, 0x829D, 'aperture', 'Aperture', CAMERA, ValueType.APERTURE),
    _exif(EXIF_IFD, 0x829A, 'exposureTime', 'Exposure Time', CAMERA, ValueType.EXPOSURE),
    _exif(EXIF_IFD, 0x8827, 'iso', 'ISO', CAMERA, ValueType.INTEGER),
    _exif(EXIF_IFD, 0x920A, 'focalLength', 'Focal Length', CAMERA, ValueType.FOCAL_LENGTH),
    _exif(EXIF_IFD, 0x9209, 'flash', 'Flash', CAMERA, ValueType.INTEGER),
    # location
    _exif(GPS_IFD, 0x0002, 'gpsLatitude', 'GPS Latitude', LOCATION, ValueType.GPS_COORDINATE),
    _exif(GPS_IFD, 0x0004, 'gpsLongitude', 'GPS Longitude', LOCATION, ValueType.GPS_COORDINATE),
    _exif(GPS_IFD, 0x0006, 'gpsAltitude', 'GPS Altitude', LOCATION, ValueType.GPS_ALTITUDE),
    # technical
    _exif(EXIF_IFD, 0xA002, 'width', 'Width', TECHNICAL, ValueType.INTEGER, editable=False),
    _exif(EXIF_IFD, 0xA003, 'height', 'Height', TECHNICAL, ValueType.INTEGER, editable=False),
    _exif(IFD0, 0x0112, 'orientation', 'Orientation', TECHNICAL, ValueType.INTEGER),
    _exif(EXIF_IFD, 0xA001, 'colorSpace', 'Color Space', TECHNICAL, ValueType.INTEGER),
    _exif(IFD0, 0x011A, 'xResolution', 'X Resolution', TECHNICAL, ValueType.RATIONAL),
    _exif(IFD0, 0x011B, 'yResolution', 'Y Resolution', TECHNICAL, ValueType.RATIONAL),
)

ID3_ENTRIES = (
    _id3('TIT2', 'title', 'Title'),
    _id3('TPE1', 'artist', 'Artist'),
    _id3('TALB', 'album', 'Album'),
    _id3('TPE2', 'albumArtist', 'Album Artist'),
    _id3('TYER', 'year', 'Year'),
    _id3('TCON', 'genre', 'Genre'),
    _id3('TRCK', 'track', 'Track'),
    _id3('TPOS', 'disc', 'Disc'),
    _id3('TCOM', 'composer', 'Composer'),
    _id3('TEXT', 'lyricist', 'Lyricist'),
    _id3('COMM', 'comment', 'Comment'),
    _id3('TCOP', 'copyright', 'Copyright'),
    _id3('TBPM', 'bpm', 'BPM', AUDIO),
    _id3('TENC', 'encoder', 'Encoded By', AUDIO),
    _id3('TSSE', 'encoderSettings', 'Encoder Settings', AUDIO),
)

# Frame IDs that carry the same field as a primary entry above
ID3_ALIASES = {
    # ID3v2.4
    'TDRC': 'TYER',
    # ID3v2.2
    'TT2': 'TIT2',
    'TP1': 'TPE1',
    'TAL': 'TALB',
    'TP2': 'TPE2',
    'TYE': 'TYER',
    'TCO': 'TCON',
    'TRK': 'TRCK',
    'TPA': 'TPOS',
    'TCM': 'TCOM',
    'TXT': 'TEXT',
    'COM': 'COMM',
    'TCR': 'TCOP',
    'TBP': 'TBPM',
    'TEN': 'TENC',
    'TSS': 'TSSE',
}

STREAM_ENTRIES = (
    _stream('format', 'Format'),
    _stream('bitrate', 'Bitrate'),
    _stream('sampleRate', 'Sample Rate'),
    _stream('channelMode', 'Channels'),
    _stream('duration', 'Duration'),
)


class TagDictionary:
    """
    Immutable lookup tables over a fixed set of tag descriptors.
    
    Lookups:
    - resolve_by_external_id: binary identifier -> descriptor (reading)
    - resolve_by_key: stable field key -> descriptor (writing)
    - resolve_by_label: user-facing label -> binary identifier
    """

    def __init__(self, entries: Iterable[TagDescriptor],
                 aliases: Optional[Mapping[Tuple[str, str], str]] = None):
        by_id: Dict[Tuple[str, ExternalTagId], TagDescriptor] = {}
        by_key: Dict[Tuple[str, str], TagDescriptor] = {}
        by_label: Dict[Tuple[str, str], TagDescriptor] = {}
        for entry in entries:
            id_key = (entry.namespace, entry.external_id)
            field_key = (entry.namespace, entry.key)
            if id_key in by_id or field_key in by_key:
                raise ValueError(f"Duplicate tag dictionary entry: {entry}")
            by_id[id_key] = entry
            by_key[field_key] = entry
            by_label.setdefault((entry.namespace, entry.label.lower()), entry)
        for (namespace, alias), primary in (aliases or {}).items():
            by_id[(namespace, alias)] = by_id[(namespace, primary)]
        self._by_id = MappingProxyType(by_id)
        self._by_key = MappingProxyType(by_key)
        self._by_label = MappingProxyType(by_label)

    def resolve_by_external_id(self, namespace: str,
                               external_id: ExternalTagId) -> Optional[TagDescriptor]:
        """
        Find the descriptor for a binary tag identifier.
        
        Args:
            namespace: EXIF, ID3 or STREAM
            external_id: (group, code) for EXIF, frame ID for ID3
            
        Returns:
            The descriptor, or None for unmapped tags
        """
        return self._by_id.get((namespace, external_id))

    def resolve_by_key(self, namespace: str, key: str) -> Optional[TagDescriptor]:
        return self._by_key.get((namespace, key))

    def resolve_by_label(self, label: str, namespace: str = EXIF) -> Optional[ExternalTagId]:
        """Return the binary identifier for a label (case-insensitive)."""
        entry = self._by_label.get((namespace, label.lower()))
        return entry.external_id if entry else None

    def entries(self, namespace: str) -> Tuple[TagDescriptor, ...]:
        return tuple(d for (ns, _), d in self._by_key.items() if ns == namespace)


TAG_DICTIONARY = TagDictionary(
    EXIF_ENTRIES + ID3_ENTRIES + STREAM_ENTRIES,
    aliases={(ID3, alias): primary for alias, primary in ID3_ALIASES.items()},
)
