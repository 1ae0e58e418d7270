# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
EXIF metadata writer

Applies the edited fields of a MetadataModel to the EXIF structure of a
JPEG and splices the re-encoded APP1 segment back into a copy of the file.
Everything outside the EXIF segment is copied byte for byte.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import Any, Callable, Dict, Optional

from dnmeta.exceptions import (
    FieldValueError,
    MalformedContainerError,
    SpliceFailureError,
    WriteUnsupportedError,
)
from dnmeta.exif_tags import (
    EXIF_IFD,
    EXIF_VERSION,
    GPS_IFD,
    GPS_REF_TAGS,
    GPS_VERSION_ID,
    ExifTagType,
    tag_name,
)
from dnmeta.image_reader import display_value
from dnmeta.jpeg_modifier import JPEGModifier
from dnmeta.model import FILE_NAME_KEY, MetadataModel
from dnmeta.options import EditorOptions
from dnmeta.tag_dictionary import (
    CUSTOM,
    EXIF,
    TAG_DICTIONARY,
    TagDescriptor,
    TagDictionary,
    ValueType,
)
from dnmeta.tiff_structure import IfdEntry, TIFFStructure
from dnmeta.value_formatter import (
    encode_xp_text,
    parse_aperture,
    parse_exposure,
    parse_focal_length,
    parse_gps_altitude,
    parse_gps_coordinate,
    parse_integer,
    parse_rational,
)

logger = logging.getLogger(__name__)

# GPS coordinate tag -> (positive ref, negative ref, limit in degrees)
GPS_COORDINATE_REFS = {
    0x0002: ('N', 'S', 90),
    0x0004: ('E', 'W', 180),
}

RATIONAL_PARSERS: Dict[ValueType, Callable[[Any], Any]] = {
    ValueType.RATIONAL: parse_rational,
    ValueType.APERTURE: parse_aperture,
    ValueType.EXPOSURE: parse_exposure,
    ValueType.FOCAL_LENGTH: parse_focal_length,
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _same_value(current: Any, edited: Any) -> bool:
    if current is None:
        return _is_blank(edited)
    return str(current).strip() == str(edited).strip()


class ExifWriter:
    """
    Writes edited metadata back into JPEG files.
    
    Only fields whose value differs from what the reader shows for the
    original file are re-encoded; every other IFD entry keeps its original
    bytes. Custom fields are never written.
    """

    def __init__(self, options: Optional[EditorOptions] = None,
                 dictionary: TagDictionary = TAG_DICTIONARY):
        self.options = options or EditorOptions()
        self.dictionary = dictionary

    def output_filename(self, filename: str) -> str:
        """Download name for an edited file."""
        return f"{self.options.get_option('OutputPrefix')}{filename}"

    def save(self, original_bytes: bytes, working_metadata: MetadataModel) -> bytes:
        """
        Produce a copy of original_bytes carrying the edited metadata.
        
        Args:
            original_bytes: Bytes of the file as it was selected
            working_metadata: The edited model
            
        Returns:
            New file bytes; original_bytes is never modified
            
        Raises:
            WriteUnsupportedError: If the file is not a JPEG
            FieldValueError: If an edited value cannot be encoded for its tag
            SpliceFailureError: If the EXIF block cannot be rebuilt or inserted
        """
        if not JPEGModifier.is_jpeg(original_bytes):
            if original_bytes[:4] in (b'II*\x00', b'MM\x00*'):
                raise WriteUnsupportedError("Writing metadata back to TIFF files is not supported")
            raise WriteUnsupportedError("Metadata can only be written to JPEG images")

        try:
            modifier = JPEGModifier(original_bytes)
            structure = self._load_structure(modifier)
            changed = self.apply(structure, working_metadata)
            tiff_data = structure.encode()
        except MalformedContainerError as e:
            raise SpliceFailureError(f"Failed to rebuild EXIF data: {e.message}") from e
        except (struct.error, IndexError, ValueError, ArithmeticError) as e:
            raise SpliceFailureError(f"Failed to rebuild EXIF data: {str(e)}") from e

        new_app1 = JPEGModifier.build_app1_segment(tiff_data)
        result = modifier.replace_exif_segment(new_app1)
        logger.info("Wrote EXIF block with %d changed field(s), %d bytes", changed, len(new_app1))
        return result

    def _load_structure(self, modifier: JPEGModifier) -> TIFFStructure:
        payload = modifier.exif_payload()
        if payload is not None:
            return TIFFStructure.parse(payload)
        if not self.options.get_option('SynthesizeExif'):
            raise SpliceFailureError("The image has no EXIF segment to update")
        logger.debug("No EXIF segment found, creating a new one")
        endian = '<' if self.options.get_option('ByteOrder') == 'II' else '>'
        return TIFFStructure(endian)

    def apply(self, structure: TIFFStructure, metadata: MetadataModel) -> int:
        """
        Write every changed dictionary field of metadata into structure.
        
        Returns:
            Number of fields that were re-encoded or removed
        """
        changed = 0
        for category, field in metadata.iter_fields():
            if category == CUSTOM or field.is_custom or field.key == FILE_NAME_KEY:
                continue
            descriptor = self.dictionary.resolve_by_key(EXIF, field.key)
            if descriptor is None or descriptor.category != category or not descriptor.editable:
                continue
            if _same_value(display_value(structure, descriptor), field.value):
                continue
            if _is_blank(field.value):
                self._remove(structure, descriptor)
            else:
                try:
                    self._write(structure, descriptor, field.value)
                except (ValueError, ArithmeticError, struct.error) as e:
                    raise FieldValueError(field.key, field.value, str(e)) from e
            changed += 1
        return changed

    def _remove(self, structure: TIFFStructure, descriptor: TagDescriptor) -> None:
        group, code = descriptor.external_id
        structure.remove(group, code)
        if group == GPS_IFD and code in GPS_REF_TAGS:
            structure.remove(group, GPS_REF_TAGS[code])
        logger.debug("Removed %s %s", group, tag_name(code))

    def _write(self, structure: TIFFStructure, descriptor: TagDescriptor, value: Any) -> None:
        group, code = descriptor.external_id
        value_type = descriptor.value_type
        self._ensure_group(structure, group)

        if value_type == ValueType.TEXT:
            entry = structure.make_ascii(code, str(value))
        elif value_type == ValueType.XP_TEXT:
            entry = structure.make_bytes(code, encode_xp_text(str(value)))
        elif value_type == ValueType.INTEGER:
            entry = self._integer_entry(structure, group, code, parse_integer(value))
        elif value_type in RATIONAL_PARSERS:
            entry = structure.make_rationals(code, [RATIONAL_PARSERS[value_type](value)])
        elif value_type == ValueType.GPS_COORDINATE:
            positive, negative, limit = GPS_COORDINATE_REFS[code]
            ref, parts = parse_gps_coordinate(value, positive, negative, limit)
            structure.set(group, structure.make_ascii(GPS_REF_TAGS[code], ref))
            entry = structure.make_rationals(code, parts)
        elif value_type == ValueType.GPS_ALTITUDE:
            ref, altitude = parse_gps_altitude(value)
            structure.set(group, structure.make_ints(GPS_REF_TAGS[code], ExifTagType.BYTE, [ref]))
            entry = structure.make_rationals(code, [altitude])
        else:
            raise ValueError(f"unsupported value type {value_type.name}")

        structure.set(group, entry)
        logger.debug("Updated %s %s", group, tag_name(code))

    @staticmethod
    def _integer_entry(structure: TIFFStructure, group: str, code: int, number: int) -> IfdEntry:
        if number < 0:
            raise ValueError("negative values are not allowed")
        existing = structure.get(group, code)
        if existing is not None and existing.type == ExifTagType.LONG:
            tag_type = ExifTagType.LONG
        else:
            tag_type = ExifTagType.SHORT if number <= 0xFFFF else ExifTagType.LONG
        return structure.make_ints(code, tag_type, [number])

    @staticmethod
    def _ensure_group(structure: TIFFStructure, group: str) -> None:
        """Create a sub-IFD with its mandatory version tag on first use."""
        if structure.entries(group):
            return
        if group == EXIF_IFD:
            structure.set(group, structure.make_bytes(EXIF_VERSION, b'0232', ExifTagType.UNDEFINED))
        elif group == GPS_IFD:
            structure.set(group, structure.make_ints(GPS_VERSION_ID, ExifTagType.BYTE, [2, 3, 0, 0]))
