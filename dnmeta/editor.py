# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Metadata editor

Ties the readers, the EXIF writer and the JSON exporter to an edit
session. Parsing and saving run off the event loop; each file selection
takes a new session token, and a completion whose token is no longer
current is dropped instead of being applied.

Copyright 2025 DNAi inc.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from dnmeta.audio_reader import AudioMetadataReader
from dnmeta.exceptions import (
    DNMetaError,
    ErrorKind,
    InvalidTransitionError,
    MetadataWriteError,
    UnsupportedFileTypeError,
)
from dnmeta.exif_writer import ExifWriter
from dnmeta.format_detector import FormatDetector, MediaKind
from dnmeta.image_reader import ImageMetadataReader
from dnmeta.json_exporter import JSONExporter
from dnmeta.model import FieldValue, MetadataModel, resolve_active_category
from dnmeta.options import EditorOptions
from dnmeta.session import (
    Action,
    AddCustomField,
    ClearError,
    EditSession,
    ParseFailure,
    ParseSuccess,
    RejectFile,
    RemoveCustomField,
    RenameCustomField,
    Reset,
    SaveFailure,
    SaveStart,
    SaveSuccess,
    SelectFile,
    SessionState,
    SetEditing,
    SourceFile,
    UpdateField,
    reduce_session,
)
from dnmeta.tag_dictionary import CUSTOM

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


@dataclass(frozen=True)
class OutputFile:
    """A file produced for download."""
    filename: str
    data: bytes = field(repr=False)


class MetadataEditor:
    """
    Owns one edit session at a time.
    
    Example:
        >>> editor = MetadataEditor()
        >>> await editor.select_file(data, 'photo.jpg', 'image/jpeg')
        >>> editor.set_editing(True)
        >>> editor.update_field('basic', 'title', 'Hello')
        >>> result = await editor.save()
        >>> result.filename
        'edited_photo.jpg'
    """

    def __init__(self, options: Optional[EditorOptions] = None,
                 notifier: Optional[Notifier] = None,
                 image_reader: Optional[ImageMetadataReader] = None,
                 audio_reader: Optional[AudioMetadataReader] = None,
                 writer: Optional[ExifWriter] = None,
                 exporter: Optional[JSONExporter] = None):
        self.options = options or EditorOptions()
        self.notifier = notifier
        self.image_reader = image_reader or ImageMetadataReader()
        self.audio_reader = audio_reader or AudioMetadataReader()
        self.writer = writer or ExifWriter(self.options)
        self.exporter = exporter or JSONExporter(self.options)
        self._session = EditSession()
        self._tokens = itertools.count(1)

    @property
    def session(self) -> EditSession:
        return self._session

    @property
    def metadata(self) -> Optional[MetadataModel]:
        """The working metadata of the current session."""
        return self._session.working_metadata

    @property
    def can_save(self) -> bool:
        source = self._session.source
        return (self._session.state == SessionState.READY and source is not None
                and FormatDetector.is_exif_writable(source.data))

    def dispatch(self, action: Action) -> EditSession:
        self._session = reduce_session(self._session, action)
        return self._session

    def _is_current(self, token: int) -> bool:
        return self._session.token == token

    def _notify(self, level: str, message: str) -> None:
        if self.notifier is None:
            return
        try:
            self.notifier(level, message)
        except Exception:
            logger.exception("Notifier failed while reporting %r", message)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def select_file(self, data: bytes, filename: str,
                          mime: str = '') -> Optional[MetadataModel]:
        """
        Start a new session for a file and parse it.
        
        Args:
            data: File contents
            filename: Original file name
            mime: Declared MIME type, used when the signature is not recognized
            
        Returns:
            The parsed working metadata, or None if a newer selection
            superseded this one while it was parsing
            
        Raises:
            UnsupportedFileTypeError: If the file is neither an image nor audio
            MalformedContainerError: If no metadata block can be read
        """
        token = next(self._tokens)
        try:
            max_size = self.options.get_option('MaxFileSize')
            if max_size and len(data) > max_size:
                raise UnsupportedFileTypeError(f"File is larger than {max_size} bytes")
            kind = FormatDetector.detect_kind(data, mime)
        except UnsupportedFileTypeError as e:
            self.dispatch(RejectFile(token, e.kind, e.message))
            logger.warning("Rejected %s: %s", filename, e.message)
            self._notify('error', e.message)
            raise

        self.dispatch(SelectFile(token, SourceFile(data, filename, mime)))
        try:
            if kind == MediaKind.IMAGE:
                metadata = await asyncio.to_thread(self.image_reader.parse, data, filename)
            else:
                metadata = await self.audio_reader.parse(data, filename)
        except DNMetaError as e:
            if not self._is_current(token):
                logger.debug("Discarding stale parse failure for %s", filename)
                return None
            self.dispatch(ParseFailure(token, e.kind or ErrorKind.MALFORMED_CONTAINER, e.message))
            logger.warning("Failed to parse %s: %s", filename, e.message)
            self._notify('error', e.message)
            raise

        if not self._is_current(token):
            logger.debug("Discarding stale parse result for %s", filename)
            return None
        self.dispatch(ParseSuccess(token, metadata))
        self._notify('success', f"Loaded metadata from {filename}")
        return self._session.working_metadata

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def set_editing(self, editing: bool) -> None:
        self.dispatch(SetEditing(editing))

    def update_field(self, category: str, key: str, value: FieldValue) -> None:
        self.dispatch(UpdateField(category, key, value))

    def add_custom_field(self) -> str:
        """
        Returns:
            Key of the new custom field
        """
        key = self._session.working_metadata.next_custom_key() if self.metadata else ''
        self.dispatch(AddCustomField())
        return key

    def remove_custom_field(self, key: str) -> None:
        self.dispatch(RemoveCustomField(key))

    def rename_custom_field(self, old_key: str, new_key: str, new_value: FieldValue) -> None:
        self.dispatch(RenameCustomField(old_key, new_key, new_value))

    def reset(self) -> None:
        self.dispatch(Reset())
        self._notify('info', "Metadata reset to original values")

    def clear_error(self) -> None:
        self.dispatch(ClearError())

    def apply_model(self, model: MetadataModel) -> int:
        """
        Copy values from another model (e.g. a JSON import) onto fields the
        working metadata already has. Custom and read-only fields are skipped.
        
        Returns:
            Number of fields updated
        """
        updated = 0
        for category, imported in model.iter_fields():
            if category == CUSTOM or imported.is_custom:
                continue
            current = self.metadata.get_field(category, imported.key) if self.metadata else None
            if current is None or not current.editable or current.value == imported.value:
                continue
            self.update_field(category, imported.key, imported.value)
            updated += 1
        return updated

    def active_category(self, requested: Optional[str] = None) -> str:
        return resolve_active_category(self.metadata, requested)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    async def save(self) -> Optional[OutputFile]:
        """
        Write the edits into a copy of the source image.
        
        Returns:
            The edited file, or None if a newer selection superseded the save
            
        Raises:
            InvalidTransitionError: If no session is loaded or editing is not enabled
            WriteUnsupportedError: If the source is not a JPEG
            SpliceFailureError: If the EXIF block cannot be rebuilt
            FieldValueError: If an edited value does not fit its tag
        """
        token = self._session.token
        self.dispatch(SaveStart(token))
        source = self._session.source
        try:
            data = await asyncio.to_thread(self.writer.save, source.data, self._session.working_metadata)
        except MetadataWriteError as e:
            if not self._is_current(token):
                logger.debug("Discarding stale save failure for %s", source.filename)
                return None
            self.dispatch(SaveFailure(token, e.kind or ErrorKind.SPLICE_FAILURE, e.message))
            logger.warning("Failed to save %s: %s", source.filename, e.message)
            self._notify('error', e.message)
            raise

        if not self._is_current(token):
            logger.debug("Discarding stale save result for %s", source.filename)
            return None
        self.dispatch(SaveSuccess(token))
        output = OutputFile(self.writer.output_filename(source.filename), data)
        logger.info("Saved %s (%d bytes)", output.filename, len(data))
        self._notify('success', f"Saved {output.filename}")
        return output

    def export_json(self) -> OutputFile:
        """
        Export the working metadata, custom fields included.
        
        Raises:
            InvalidTransitionError: If no metadata is loaded
        """
        session = self._session
        if session.working_metadata is None or session.source is None:
            raise InvalidTransitionError("No metadata loaded to export")
        data = self.exporter.export(session.working_metadata, session.source.filename)
        output = OutputFile(self.exporter.export_filename(session.source.filename), data)
        self._notify('success', f"Exported {output.filename}")
        return output
