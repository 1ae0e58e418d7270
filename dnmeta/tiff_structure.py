# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
TIFF/IFD structure utilities

This module decodes the TIFF structure embedded in an EXIF block into
per-group entry lists and encodes such a structure back into bytes.
Entries keep their raw value bytes, so tags the editor does not understand
survive a rebuild unchanged. Pointer tags and the IFD1 thumbnail location
are structural and are regenerated on encode.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from dnmeta.exceptions import MalformedContainerError
from dnmeta.exif_tags import (
    ExifTagType,
    TAG_SIZES,
    IFD0,
    IFD1,
    EXIF_IFD,
    INTEROP_IFD,
    IFD_GROUPS,
    POINTER_TAGS,
    JPEG_INTERCHANGE_FORMAT,
    JPEG_INTERCHANGE_FORMAT_LENGTH,
    tag_name,
)

logger = logging.getLogger(__name__)

MAX_IFD_ENTRIES = 1000


@dataclass
class IfdEntry:
    """One directory entry with its value bytes in the block's byte order."""
    tag: int
    type: int
    count: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _type_size(tag_type: int) -> Optional[int]:
    try:
        return TAG_SIZES[ExifTagType(tag_type)]
    except ValueError:
        return None


def decode_value(entry: IfdEntry, endian: str) -> Any:
    """
    Decode an entry's raw bytes into a Python value.
    
    Args:
        entry: Directory entry
        endian: '<' or '>'
        
    Returns:
        str for ASCII, bytes for UNDEFINED and BYTE arrays, int/float or
        (numerator, denominator) tuples for numeric types; a list when
        count > 1.
    """
    tag_type = ExifTagType(entry.type)
    data = entry.data
    count = entry.count

    if tag_type == ExifTagType.ASCII:
        null_pos = data.find(b'\x00')
        string_data = data[:null_pos] if null_pos >= 0 else data
        if any(b > 127 for b in string_data):
            try:
                return string_data.decode('utf-8').strip()
            except UnicodeDecodeError:
                return string_data.decode('latin-1').strip()
        return string_data.decode('ascii', errors='replace').strip()

    if tag_type == ExifTagType.UNDEFINED:
        return data

    if tag_type == ExifTagType.BYTE:
        if count == 1:
            return data[0]
        return data

    fmt = {
        ExifTagType.SBYTE: 'b',
        ExifTagType.SHORT: 'H',
        ExifTagType.SSHORT: 'h',
        ExifTagType.LONG: 'I',
        ExifTagType.SLONG: 'i',
        ExifTagType.FLOAT: 'f',
        ExifTagType.DOUBLE: 'd',
    }.get(tag_type)
    if fmt is not None:
        values = list(struct.unpack(f'{endian}{count}{fmt}', data))
        return values[0] if count == 1 else values

    # RATIONAL / SRATIONAL
    fmt = 'I' if tag_type == ExifTagType.RATIONAL else 'i'
    flat = struct.unpack(f'{endian}{count * 2}{fmt}', data)
    pairs = [(flat[i], flat[i + 1]) for i in range(0, len(flat), 2)]
    return pairs[0] if count == 1 else pairs


class TIFFStructure:
    """
    In-memory EXIF/TIFF structure.
    
    Holds the entries of IFD0, the Exif, Interop and GPS sub-IFDs and IFD1,
    plus the IFD1 thumbnail bytes. Offsets are relative to the TIFF header.
    """

    def __init__(self, endian: str = '<'):
        """
        Initialize an empty structure.
        
        Args:
            endian: Byte order ('<' for little-endian, '>' for big-endian)
        """
        self.endian = endian
        self.ifds: Dict[str, List[IfdEntry]] = {}
        self.thumbnail: Optional[bytes] = None

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, data: bytes) -> 'TIFFStructure':
        """
        Parse a TIFF structure (the part of an EXIF block after 'Exif\\0\\0').
        
        Raises:
            MalformedContainerError: If the header or IFD0 is unreadable
        """
        if len(data) < 8:
            raise MalformedContainerError("Invalid TIFF structure: too short")

        if data[:2] == b'II':
            endian = '<'
        elif data[:2] == b'MM':
            endian = '>'
        else:
            raise MalformedContainerError("Invalid TIFF structure: bad byte order mark")

        magic = struct.unpack(f'{endian}H', data[2:4])[0]
        if magic != 42:
            raise MalformedContainerError("Invalid TIFF structure: bad magic number")

        structure = cls(endian)
        ifd0_offset = struct.unpack(f'{endian}I', data[4:8])[0]
        visited = set()
        next_offset = structure._parse_ifd(data, IFD0, ifd0_offset, visited)
        if next_offset:
            structure._parse_ifd(data, IFD1, next_offset, visited)
            structure._extract_thumbnail(data)
        return structure

    def _parse_ifd(self, data: bytes, group: str, offset: int, visited: set) -> int:
        """
        Parse one IFD and, recursively, the sub-IFDs it points to.
        
        Returns:
            Offset of the next IFD in the chain (0 if none)
        """
        if offset in visited:
            logger.debug("IFD loop detected at offset %d (%s)", offset, group)
            return 0
        visited.add(offset)

        if offset < 8 or offset + 2 > len(data):
            if group == IFD0:
                raise MalformedContainerError(f"IFD0 offset {offset} is out of range")
            logger.debug("Skipping %s: offset %d out of range", group, offset)
            return 0

        num_entries = struct.unpack(f'{self.endian}H', data[offset:offset + 2])[0]
        table_end = offset + 2 + num_entries * 12
        if num_entries > MAX_IFD_ENTRIES or table_end > len(data):
            if group == IFD0:
                raise MalformedContainerError(f"IFD0 entry table is truncated ({num_entries} entries)")
            logger.debug("Skipping %s: entry table truncated", group)
            return 0

        entries: List[IfdEntry] = []
        children: List[Tuple[str, int]] = []
        for entry_offset in range(offset + 2, table_end, 12):
            tag_id, tag_type, count, value_field = struct.unpack(
                f'{self.endian}HHI4s', data[entry_offset:entry_offset + 12]
            )
            type_size = _type_size(tag_type)
            if type_size is None:
                logger.debug("%s %s: unknown field type %d", group, tag_name(tag_id), tag_type)
                continue

            total_size = type_size * count
            if total_size <= 4:
                raw = value_field[:total_size]
            else:
                value_offset = struct.unpack(f'{self.endian}I', value_field)[0]
                if value_offset + total_size > len(data):
                    logger.debug("%s %s: value out of range", group, tag_name(tag_id))
                    continue
                raw = data[value_offset:value_offset + total_size]

            child_group = POINTER_TAGS.get((group, tag_id))
            if child_group is not None:
                if total_size >= 4:
                    children.append((child_group, struct.unpack(f'{self.endian}I', raw[:4])[0]))
                continue

            entries.append(IfdEntry(tag_id, tag_type, count, raw))

        self.ifds[group] = entries

        next_offset = 0
        if table_end + 4 <= len(data):
            next_offset = struct.unpack(f'{self.endian}I', data[table_end:table_end + 4])[0]

        for child_group, child_offset in children:
            self._parse_ifd(data, child_group, child_offset, visited)

        return next_offset

    def _extract_thumbnail(self, data: bytes) -> None:
        entries = self.ifds.get(IFD1, [])
        offset_entry = self.get(IFD1, JPEG_INTERCHANGE_FORMAT)
        length_entry = self.get(IFD1, JPEG_INTERCHANGE_FORMAT_LENGTH)
        if offset_entry is None or length_entry is None:
            return
        start = decode_value(offset_entry, self.endian)
        length = decode_value(length_entry, self.endian)
        # The location entries are regenerated on encode
        self.ifds[IFD1] = [
            e for e in entries
            if e.tag not in (JPEG_INTERCHANGE_FORMAT, JPEG_INTERCHANGE_FORMAT_LENGTH)
        ]
        if isinstance(start, int) and isinstance(length, int) and start + length <= len(data):
            self.thumbnail = data[start:start + length]
        else:
            logger.debug("IFD1 thumbnail out of range, dropping it")

    # ------------------------------------------------------------------
    # Entry access
    # ------------------------------------------------------------------

    def entries(self, group: str) -> List[IfdEntry]:
        return self.ifds.get(group, [])

    def get(self, group: str, tag: int) -> Optional[IfdEntry]:
        for entry in self.ifds.get(group, []):
            if entry.tag == tag:
                return entry
        return None

    def value(self, group: str, tag: int) -> Any:
        """Decoded value of a tag, or None when absent."""
        entry = self.get(group, tag)
        return decode_value(entry, self.endian) if entry is not None else None

    def set(self, group: str, entry: IfdEntry) -> None:
        """Replace an entry in place, or append it when the tag is new."""
        entries = self.ifds.setdefault(group, [])
        for index, existing in enumerate(entries):
            if existing.tag == entry.tag:
                entries[index] = entry
                return
        entries.append(entry)

    def remove(self, group: str, tag: int) -> None:
        if group in self.ifds:
            self.ifds[group] = [e for e in self.ifds[group] if e.tag != tag]

    # ------------------------------------------------------------------
    # Entry construction
    # ------------------------------------------------------------------

    def make_ascii(self, tag: int, text: str) -> IfdEntry:
        try:
            encoded = text.encode('ascii') + b'\x00'
        except UnicodeEncodeError:
            # EXIF 3.0 allows UTF-8 in ASCII fields
            encoded = text.encode('utf-8') + b'\x00'
        return IfdEntry(tag, ExifTagType.ASCII, len(encoded), encoded)

    def make_bytes(self, tag: int, raw: bytes, tag_type: int = ExifTagType.BYTE) -> IfdEntry:
        return IfdEntry(tag, tag_type, len(raw), raw)

    def make_ints(self, tag: int, tag_type: int, values: Sequence[int]) -> IfdEntry:
        fmt = {
            ExifTagType.BYTE: 'B',
            ExifTagType.SHORT: 'H',
            ExifTagType.LONG: 'I',
            ExifTagType.SSHORT: 'h',
            ExifTagType.SLONG: 'i',
        }[ExifTagType(tag_type)]
        raw = struct.pack(f'{self.endian}{len(values)}{fmt}', *values)
        return IfdEntry(tag, tag_type, len(values), raw)

    def make_rationals(self, tag: int, values: Sequence[Tuple[int, int]],
                       signed: bool = False) -> IfdEntry:
        fmt = 'i' if signed else 'I'
        flat = [part for pair in values for part in pair]
        raw = struct.pack(f'{self.endian}{len(flat)}{fmt}', *flat)
        tag_type = ExifTagType.SRATIONAL if signed else ExifTagType.RATIONAL
        return IfdEntry(tag, tag_type, len(values), raw)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def _groups_to_write(self) -> List[str]:
        groups = [IFD0]
        for group in IFD_GROUPS[1:]:
            if self.ifds.get(group):
                groups.append(group)
        if IFD1 not in groups and self.thumbnail:
            groups.append(IFD1)
        # The Interop IFD is only reachable through the Exif IFD
        if INTEROP_IFD in groups and EXIF_IFD not in groups:
            groups.insert(1, EXIF_IFD)
        return groups

    def _entries_with_pointers(self, group: str, groups: Iterable[str],
                               offsets: Dict[str, int], thumbnail_offset: int) -> List[IfdEntry]:
        entries = list(self.ifds.get(group, []))
        for (parent, pointer_tag), child in POINTER_TAGS.items():
            if parent == group and child in groups:
                entries.append(self.make_ints(pointer_tag, ExifTagType.LONG, [offsets.get(child, 0)]))
        if group == IFD1 and self.thumbnail:
            entries.append(self.make_ints(JPEG_INTERCHANGE_FORMAT, ExifTagType.LONG, [thumbnail_offset]))
            entries.append(self.make_ints(JPEG_INTERCHANGE_FORMAT_LENGTH, ExifTagType.LONG,
                                          [len(self.thumbnail)]))
        return sorted(entries, key=lambda e: e.tag)

    @staticmethod
    def _ifd_size(entries: List[IfdEntry]) -> int:
        size = 2 + 12 * len(entries) + 4
        for entry in entries:
            if entry.size > 4:
                size += entry.size + (entry.size & 1)
        return size

    def encode(self) -> bytes:
        """
        Encode the structure into TIFF bytes (header included).
        
        Returns:
            TIFF structure suitable for an EXIF APP1 payload
        """
        groups = self._groups_to_write()

        # First pass: sizes do not depend on pointer values
        offsets: Dict[str, int] = {}
        position = 8
        for group in groups:
            offsets[group] = position
            position += self._ifd_size(self._entries_with_pointers(group, groups, {}, 0))
        thumbnail_offset = position

        out = bytearray()
        out.extend(b'II' if self.endian == '<' else b'MM')
        out.extend(struct.pack(f'{self.endian}HI', 42, offsets[IFD0]))

        for group in groups:
            entries = self._entries_with_pointers(group, groups, offsets, thumbnail_offset)
            next_ifd = offsets[IFD1] if group == IFD0 and IFD1 in offsets else 0
            out.extend(self._encode_ifd(entries, offsets[group], next_ifd))

        if self.thumbnail and IFD1 in offsets:
            out.extend(self.thumbnail)
        return bytes(out)

    def _encode_ifd(self, entries: List[IfdEntry], start: int, next_ifd: int) -> bytes:
        table = bytearray(struct.pack(f'{self.endian}H', len(entries)))
        data_area = bytearray()
        data_start = start + 2 + 12 * len(entries) + 4

        for entry in entries:
            table.extend(struct.pack(f'{self.endian}HHI', entry.tag, entry.type, entry.count))
            if entry.size <= 4:
                table.extend(entry.data.ljust(4, b'\x00'))
            else:
                table.extend(struct.pack(f'{self.endian}I', data_start + len(data_area)))
                data_area.extend(entry.data)
                if entry.size & 1:
                    data_area.append(0)

        table.extend(struct.pack(f'{self.endian}I', next_ifd))
        return bytes(table + data_area)
