# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
dnmeta - Pure Python image and audio metadata editor

Reads EXIF metadata from JPEG/TIFF images and ID3 tags from MP3 audio
into a categorized field model, lets callers edit it, and writes the
edits back into JPEG files without touching the image data.
All parsing is done by directly reading binary file structures.

Copyright 2025 DNAi inc.
"""

__version__ = "0.1.0"
__author__ = "DNAi inc."

from dnmeta.audio_reader import AudioMetadataReader
from dnmeta.editor import MetadataEditor, OutputFile
from dnmeta.exceptions import (
    DNMetaError,
    DuplicateFieldKeyError,
    ErrorKind,
    FieldValueError,
    InvalidTransitionError,
    MalformedContainerError,
    MetadataReadError,
    MetadataWriteError,
    SpliceFailureError,
    UnsupportedFileTypeError,
    WriteUnsupportedError,
)
from dnmeta.exif_writer import ExifWriter
from dnmeta.image_reader import ImageMetadataReader
from dnmeta.json_exporter import JSONExporter
from dnmeta.model import MetadataField, MetadataModel, resolve_active_category
from dnmeta.options import EditorOptions
from dnmeta.session import EditSession, SessionState, reduce_session
from dnmeta.tag_dictionary import TAG_DICTIONARY, TagDescriptor, TagDictionary, ValueType

__all__ = [
    "AudioMetadataReader",
    "MetadataEditor",
    "OutputFile",
    "DNMetaError",
    "DuplicateFieldKeyError",
    "ErrorKind",
    "FieldValueError",
    "InvalidTransitionError",
    "MalformedContainerError",
    "MetadataReadError",
    "MetadataWriteError",
    "SpliceFailureError",
    "UnsupportedFileTypeError",
    "WriteUnsupportedError",
    "ExifWriter",
    "ImageMetadataReader",
    "JSONExporter",
    "MetadataField",
    "MetadataModel",
    "resolve_active_category",
    "EditorOptions",
    "EditSession",
    "SessionState",
    "reduce_session",
    "TAG_DICTIONARY",
    "TagDescriptor",
    "TagDictionary",
    "ValueType",
]
