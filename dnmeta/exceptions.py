# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Exception classes for dnmeta

This module defines the error taxonomy shared by the readers, the EXIF
writer and the edit session. Every concrete error carries an ErrorKind so
the session can record which failure happened without keeping the
exception object around.

Copyright 2025 DNAi inc.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Failure categories recorded on an edit session."""
    UNSUPPORTED_FILE_TYPE = "unsupported_file_type"
    MALFORMED_CONTAINER = "malformed_container"
    WRITE_UNSUPPORTED = "write_unsupported"
    SPLICE_FAILURE = "splice_failure"
    INVALID_VALUE = "invalid_value"


class DNMetaError(Exception):
    """
    Base exception for all dnmeta errors.
    
    All dnmeta exceptions inherit from this class, allowing
    catch-all error handling for any metadata-related errors.
    """
    kind: Optional[ErrorKind] = None

    def __init__(self, message: str = ""):
        """
        Initialize the exception with an optional error message.
        
        Args:
            message: Descriptive error message explaining what went wrong
        """
        self.message = message
        super().__init__(message)


class MetadataReadError(DNMetaError):
    """
    Raised when metadata cannot be read from a file.
    """
    pass


class MalformedContainerError(MetadataReadError):
    """
    Raised when a file has no parseable metadata block.
    
    This exception is raised when:
    - A JPEG carries no EXIF APP1 segment
    - The container is neither JPEG nor TIFF based
    - The TIFF/IFD structure or ID3 tag is truncated or corrupted
    """
    kind = ErrorKind.MALFORMED_CONTAINER


class UnsupportedFileTypeError(DNMetaError):
    """
    Raised when a file is recognized as neither an image nor an audio file.
    """
    kind = ErrorKind.UNSUPPORTED_FILE_TYPE


class MetadataWriteError(DNMetaError):
    """
    Raised when edited metadata cannot be written back.
    """
    pass


class WriteUnsupportedError(MetadataWriteError):
    """
    Raised when a save is attempted on a file type without EXIF support.
    """
    kind = ErrorKind.WRITE_UNSUPPORTED


class SpliceFailureError(MetadataWriteError):
    """
    Raised when the new EXIF block cannot be built or inserted.
    
    The original bytes and the in-memory edits are left untouched.
    """
    kind = ErrorKind.SPLICE_FAILURE


class FieldValueError(MetadataWriteError):
    """
    Raised when an edited value cannot be coerced to its tag's binary type.
    """
    kind = ErrorKind.INVALID_VALUE

    def __init__(self, key: str, value: object, reason: str = ""):
        self.key = key
        self.value = value
        message = f"Invalid value for '{key}': {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InvalidTransitionError(DNMetaError):
    """
    Raised when a session action is dispatched in a state that does not accept it.
    """
    pass


class DuplicateFieldKeyError(DNMetaError):
    """
    Raised when renaming a custom field onto a key another custom field already uses.
    """
    pass
