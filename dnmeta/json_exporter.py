# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JSON export and import of metadata models

The export carries every category, custom fields included, so it is the
lossless way to save edits for any file type.

Copyright 2025 DNAi inc.
"""

import json
from typing import Optional

from dnmeta.exceptions import MalformedContainerError
from dnmeta.model import MetadataModel
from dnmeta.options import EditorOptions


class JSONExporter:
    """
    Serializes a MetadataModel as
    {"<category>": [{key, label, value, category, editable, isCustom}, ...], ...}.
    """

    def __init__(self, options: Optional[EditorOptions] = None):
        self.options = options or EditorOptions()

    def export(self, metadata: MetadataModel, filename: str = '') -> bytes:
        """
        Serialize metadata as pretty-printed UTF-8 JSON.
        
        Args:
            metadata: Model to export
            filename: Name of the source file; only used by export_filename
            
        Returns:
            JSON document as bytes
        """
        json_str = json.dumps(
            metadata.to_dict(),
            indent=self.options.get_option('JsonIndent'),
            ensure_ascii=False,
        )
        return json_str.encode('utf-8')

    def export_filename(self, filename: str) -> str:
        """
        Download name for an export: the part of filename before its first dot
        plus the configured suffix ('photo.jpg' -> 'photo_metadata.json').
        """
        return f"{filename.split('.')[0]}{self.options.get_option('JsonSuffix')}"

    def load(self, data: bytes) -> MetadataModel:
        """
        Rebuild a model from an export.
        
        Raises:
            MalformedContainerError: If data is not a metadata export
        """
        try:
            document = json.loads(data.decode('utf-8') if isinstance(data, bytes) else data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedContainerError(f"Invalid metadata JSON: {str(e)}") from e
        if not isinstance(document, dict):
            raise MalformedContainerError("Invalid metadata JSON: expected an object of categories")
        try:
            return MetadataModel.from_dict(document)
        except ValueError as e:
            raise MalformedContainerError(f"Invalid metadata JSON: {str(e)}") from e
