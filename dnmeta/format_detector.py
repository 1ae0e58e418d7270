# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
File format detector

Classifies a selected file as image or audio from its signature, falling
back to the declared MIME type, and decides whether EXIF writing applies.

Copyright 2025 DNAi inc.
"""

from enum import Enum
from typing import Dict, Optional

from dnmeta.exceptions import UnsupportedFileTypeError


class MediaKind(Enum):
    IMAGE = "image"
    AUDIO = "audio"


class FormatDetector:
    """
    Detects file formats from file signatures and MIME types.
    """

    # Format signatures (magic numbers)
    FORMAT_SIGNATURES: Dict[bytes, str] = {
        b'\xff\xd8\xff': 'JPEG',
        b'II*\x00': 'TIFF',
        b'MM\x00*': 'TIFF',
        b'\x89PNG\r\n\x1a\n': 'PNG',
        b'GIF87a': 'GIF',
        b'GIF89a': 'GIF',
        b'ID3': 'MP3',
        b'\xff\xfb': 'MP3',
        b'\xff\xf3': 'MP3',
        b'\xff\xf2': 'MP3',
        b'fLaC': 'FLAC',
        b'OggS': 'OGG',
    }

    FORMAT_KINDS: Dict[str, MediaKind] = {
        'JPEG': MediaKind.IMAGE,
        'TIFF': MediaKind.IMAGE,
        'PNG': MediaKind.IMAGE,
        'GIF': MediaKind.IMAGE,
        'MP3': MediaKind.AUDIO,
        'FLAC': MediaKind.AUDIO,
        'OGG': MediaKind.AUDIO,
    }

    # Formats whose EXIF segment can be rewritten in place
    WRITABLE_FORMATS = ('JPEG',)

    @classmethod
    def detect_format(cls, file_data: bytes) -> Optional[str]:
        """
        Detect file format from its leading bytes.
        
        Returns:
            Format name or None if not detected
        """
        for signature, format_name in cls.FORMAT_SIGNATURES.items():
            if file_data.startswith(signature):
                return format_name
        return None

    @classmethod
    def detect_kind(cls, file_data: bytes, mime: Optional[str] = None) -> MediaKind:
        """
        Classify a file as image or audio.
        
        The signature wins over the declared MIME type; the MIME type is only
        consulted for signatures this module does not know.
        
        Raises:
            UnsupportedFileTypeError: If neither an image nor an audio file
        """
        format_name = cls.detect_format(file_data)
        if format_name is not None:
            return cls.FORMAT_KINDS[format_name]
        mime = (mime or '').lower()
        if mime.startswith('image/'):
            return MediaKind.IMAGE
        if mime.startswith('audio/'):
            return MediaKind.AUDIO
        raise UnsupportedFileTypeError(
            "Unsupported file type. Please select an image or audio file."
        )

    @classmethod
    def is_exif_writable(cls, file_data: bytes) -> bool:
        return cls.detect_format(file_data) in cls.WRITABLE_FORMATS
