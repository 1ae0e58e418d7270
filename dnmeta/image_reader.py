# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Image metadata reader

Parses the EXIF block of a JPEG (or a bare TIFF file) and maps every tag
known to the tag dictionary into a MetadataModel. Unknown tags are dropped.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from typing import Optional

from dnmeta.exceptions import MalformedContainerError
from dnmeta.exif_tags import GPS_REF_TAGS, IFD0, EXIF_IFD, GPS_IFD, tag_name
from dnmeta.jpeg_modifier import JPEGModifier
from dnmeta.model import MetadataField, MetadataModel, file_name_field
from dnmeta.tag_dictionary import (
    BASIC,
    CAMERA,
    EXIF,
    TAG_DICTIONARY,
    TagDescriptor,
    TagDictionary,
)
from dnmeta.tiff_structure import TIFFStructure, decode_value
from dnmeta.value_formatter import DisplayValue, format_value

logger = logging.getLogger(__name__)

# Groups whose tags are presented, in presentation order
READ_GROUPS = (IFD0, EXIF_IFD, GPS_IFD)


def load_exif_structure(file_data: bytes) -> TIFFStructure:
    """
    Locate and decode the EXIF/TIFF structure of an image.
    
    Raises:
        MalformedContainerError: If there is no EXIF block or it is corrupt
    """
    if JPEGModifier.is_jpeg(file_data):
        payload = JPEGModifier(file_data).exif_payload()
        if payload is None:
            raise MalformedContainerError("No EXIF metadata found in JPEG file")
        return TIFFStructure.parse(payload)
    if file_data[:4] in (b'II*\x00', b'MM\x00*'):
        return TIFFStructure.parse(file_data)
    raise MalformedContainerError("Not a JPEG or TIFF based image")


def display_value(structure: TIFFStructure, descriptor: TagDescriptor) -> Optional[DisplayValue]:
    """
    Display value of a dictionary tag in a decoded structure, or None if absent.
    """
    group, code = descriptor.external_id
    entry = structure.get(group, code)
    if entry is None:
        return None
    ref = None
    ref_tag = GPS_REF_TAGS.get(code) if group == GPS_IFD else None
    if ref_tag is not None:
        ref = structure.value(group, ref_tag)
    return format_value(descriptor.value_type, decode_value(entry, structure.endian), ref)


class ImageMetadataReader:
    """
    Reads EXIF metadata into a MetadataModel.
    """

    def __init__(self, dictionary: TagDictionary = TAG_DICTIONARY):
        self.dictionary = dictionary

    def parse(self, file_data: bytes, filename: str = '') -> MetadataModel:
        """
        Parse image bytes.
        
        Args:
            file_data: Raw file contents
            filename: Name shown in the non-editable fileName field
            
        Returns:
            MetadataModel with 'basic' and 'camera' always present
            
        Raises:
            MalformedContainerError: If no EXIF block can be decoded
        """
        try:
            structure = load_exif_structure(file_data)
            return self._build_model(structure, filename)
        except MalformedContainerError:
            raise
        except (struct.error, IndexError, ValueError, UnicodeError, ArithmeticError) as e:
            raise MalformedContainerError(f"Failed to read EXIF data: {str(e)}") from e

    def _build_model(self, structure: TIFFStructure, filename: str) -> MetadataModel:
        model = MetadataModel({BASIC: [], CAMERA: []})
        model.add_field(file_name_field(filename))

        for group in READ_GROUPS:
            for entry in structure.entries(group):
                descriptor = self.dictionary.resolve_by_external_id(EXIF, (group, entry.tag))
                if descriptor is None:
                    continue
                try:
                    value = display_value(structure, descriptor)
                except (ValueError, ArithmeticError) as e:
                    logger.debug("Dropping %s %s: %s", group, tag_name(entry.tag), e)
                    continue
                if value is None:
                    logger.debug("Dropping %s %s: unusable value", group, tag_name(entry.tag))
                    continue
                model.add_field(MetadataField(
                    key=descriptor.key,
                    label=descriptor.label,
                    value=value,
                    category=descriptor.category,
                    editable=descriptor.editable,
                ))
        return model
