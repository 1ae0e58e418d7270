# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JPEG file modifier

This module walks the marker segments of a JPEG file and replaces or
inserts the EXIF APP1 segment. Only the header segments before the first
SOS marker are indexed; everything from SOS onwards (entropy-coded data,
restart markers, EOI and any trailer) is copied verbatim, so a splice never
touches the compressed image data.

Copyright 2025 DNAi inc.
"""

import struct
from typing import List, Optional, Tuple

from dnmeta.exceptions import MalformedContainerError, SpliceFailureError

EXIF_HEADER = b'Exif\x00\x00'

# Largest payload a segment length field can describe
MAX_SEGMENT_PAYLOAD = 0xFFFF - 2


class JPEGModifier:
    """
    Indexes JPEG header segments and splices a new EXIF APP1 segment.
    """

    # JPEG markers
    SOI = 0xFFD8  # Start of Image
    EOI = 0xFFD9  # End of Image
    SOS = 0xFFDA  # Start of Scan
    APP0 = 0xFFE0  # APP0 (JFIF)
    APP1 = 0xFFE1  # APP1 (EXIF)
    TEM = 0xFF01

    def __init__(self, file_data: bytes):
        """
        Initialize JPEG modifier.
        
        Args:
            file_data: Original JPEG file data
            
        Raises:
            MalformedContainerError: If the marker structure is invalid
        """
        self.file_data = file_data
        self.segments: List[Tuple[int, int, int]] = []  # (marker, offset, length)
        self.scan_offset = len(file_data)
        self._parse_segments()

    @staticmethod
    def is_jpeg(data: bytes) -> bool:
        return len(data) >= 3 and data[:3] == b'\xff\xd8\xff'

    def _parse_segments(self) -> None:
        """
        Parse header segments up to the first SOS (or EOI).
        """
        data = self.file_data
        if len(data) < 4 or struct.unpack('>H', data[0:2])[0] != self.SOI:
            raise MalformedContainerError("Invalid JPEG file: missing SOI marker")

        i = 2
        while i < len(data):
            if data[i] != 0xFF:
                raise MalformedContainerError(f"Invalid JPEG file: expected marker at offset {i}")

            # Fill bytes: any number of 0xFF may precede a marker
            while i + 1 < len(data) and data[i + 1] == 0xFF:
                i += 1
            if i + 1 >= len(data):
                raise MalformedContainerError("Invalid JPEG file: truncated marker")

            marker = 0xFF00 | data[i + 1]
            if marker in (self.SOS, self.EOI):
                self.scan_offset = i
                return

            # Standalone markers carry no length field
            if marker == self.TEM or 0xFFD0 <= marker <= 0xFFD7:
                self.segments.append((marker, i, 0))
                i += 2
                continue

            if i + 4 > len(data):
                raise MalformedContainerError("Invalid JPEG file: truncated segment header")
            length = struct.unpack('>H', data[i + 2:i + 4])[0]
            if length < 2 or i + 2 + length > len(data):
                raise MalformedContainerError(
                    f"Invalid JPEG file: segment 0x{marker:04X} at offset {i} overruns the file"
                )
            self.segments.append((marker, i, length))
            i += 2 + length

        raise MalformedContainerError("Invalid JPEG file: no image data (missing SOS)")

    def _segment_end(self, offset: int, length: int) -> int:
        return offset + 2 + length

    def find_exif_segment(self) -> Optional[Tuple[int, int, int]]:
        """
        Find the first APP1 segment carrying EXIF data.
        
        Returns:
            (marker, offset, length) or None
        """
        for marker, offset, length in self.segments:
            if marker == self.APP1 and self.file_data[offset + 4:offset + 10] == EXIF_HEADER:
                return marker, offset, length
        return None

    def exif_payload(self) -> Optional[bytes]:
        """
        Return the TIFF structure of the EXIF segment (after 'Exif\\0\\0').
        """
        segment = self.find_exif_segment()
        if segment is None:
            return None
        _, offset, length = segment
        return self.file_data[offset + 10:self._segment_end(offset, length)]

    @staticmethod
    def build_app1_segment(tiff_data: bytes) -> bytes:
        """
        Build a complete APP1 segment (marker and length included) for TIFF data.
        
        Raises:
            SpliceFailureError: If the data does not fit in one segment
        """
        payload_length = len(EXIF_HEADER) + len(tiff_data)
        if payload_length > MAX_SEGMENT_PAYLOAD:
            raise SpliceFailureError(
                f"EXIF block of {payload_length} bytes exceeds the APP1 segment limit"
            )
        return b'\xFF\xE1' + struct.pack('>H', payload_length + 2) + EXIF_HEADER + tiff_data

    def replace_exif_segment(self, new_app1_data: bytes) -> bytes:
        """
        Replace the EXIF APP1 segment, or insert one right after SOI.
        
        Args:
            new_app1_data: New APP1 segment (marker and length included)
            
        Returns:
            New file data; every byte outside the EXIF segment is copied as-is
        """
        segment = self.find_exif_segment()
        if segment is None:
            return self.file_data[:2] + new_app1_data + self.file_data[2:]
        _, offset, length = segment
        end = self._segment_end(offset, length)
        return self.file_data[:offset] + new_app1_data + self.file_data[end:]

    def non_exif_parts(self) -> List[bytes]:
        """
        Every header segment except EXIF APP1, followed by the scan data.
        
        Used to compare two files while ignoring their EXIF segments.
        """
        exif = self.find_exif_segment()
        parts = [self.file_data[:2]]
        for segment in self.segments:
            if segment == exif:
                continue
            _, offset, length = segment
            parts.append(self.file_data[offset:self._segment_end(offset, length)])
        parts.append(self.file_data[self.scan_offset:])
        return parts
