# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Metadata model

The category -> fields structure the readers produce, the editor mutates
and the exporters serialize. Category and field order is insertion order
and is significant for presentation.

Copyright 2025 DNAi inc.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from dnmeta.exceptions import DuplicateFieldKeyError
from dnmeta.tag_dictionary import BASIC, CUSTOM

FieldValue = Union[str, int, float]

CUSTOM_FIELD_LABEL = 'New Field'
CUSTOM_KEY_PREFIX = 'customField'
FILE_NAME_KEY = 'fileName'


@dataclass
class MetadataField:
    """A single viewable/editable metadata entry."""
    key: str
    label: str
    value: FieldValue
    category: str
    editable: bool = True
    is_custom: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'label': self.label,
            'value': self.value,
            'category': self.category,
            'editable': self.editable,
            'isCustom': self.is_custom,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], category: Optional[str] = None) -> 'MetadataField':
        return cls(
            key=str(data['key']),
            label=str(data.get('label', data['key'])),
            value=data.get('value', ''),
            category=str(data.get('category') or category),
            editable=bool(data.get('editable', True)),
            is_custom=bool(data.get('isCustom', False)),
        )


class MetadataModel:
    """
    Mapping from category name to an ordered list of fields.
    
    Field keys are unique within a category. Operations that target a
    missing category or key are no-ops.
    """

    def __init__(self, categories: Optional[Mapping[str, List[MetadataField]]] = None):
        self._categories: Dict[str, List[MetadataField]] = {}
        for name, fields in (categories or {}).items():
            self._categories[name] = []
            for field in fields:
                self.add_field(field, name)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def ensure_category(self, category: str) -> List[MetadataField]:
        return self._categories.setdefault(category, [])

    def add_field(self, field: MetadataField, category: Optional[str] = None) -> None:
        """
        Append a field; a field whose key already exists in the category replaces it.
        """
        fields = self.ensure_category(category or field.category)
        for index, existing in enumerate(fields):
            if existing.key == field.key:
                fields[index] = field
                return
        fields.append(field)

    def categories(self) -> List[str]:
        return list(self._categories)

    def visible_categories(self) -> List[str]:
        """Categories that have at least one field, in insertion order."""
        return [name for name, fields in self._categories.items() if fields]

    def fields(self, category: str) -> List[MetadataField]:
        return list(self._categories.get(category, []))

    def get_field(self, category: str, key: str) -> Optional[MetadataField]:
        for field in self._categories.get(category, []):
            if field.key == key:
                return field
        return None

    def iter_fields(self) -> Iterator[Tuple[str, MetadataField]]:
        for category, fields in self._categories.items():
            for field in fields:
                yield category, field

    def __contains__(self, category: str) -> bool:
        return category in self._categories

    def __len__(self) -> int:
        return sum(len(fields) for fields in self._categories.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MetadataModel):
            return NotImplemented
        return self._categories == other._categories

    def __repr__(self) -> str:
        counts = ', '.join(f"{name}={len(fields)}" for name, fields in self._categories.items())
        return f"MetadataModel({counts})"

    def copy(self) -> 'MetadataModel':
        """Deep copy; the copy shares no field objects with this model."""
        clone = MetadataModel()
        clone._categories = copy.deepcopy(self._categories)
        return clone

    # ------------------------------------------------------------------
    # Editing operations
    # ------------------------------------------------------------------

    def update_field(self, category: str, key: str, value: FieldValue) -> None:
        """
        Replace a field's value. No-op if the category or key is absent.
        
        Editability is not enforced here; gating edits to read-only fields is
        the caller's job.
        """
        field = self.get_field(category, key)
        if field is not None:
            field.value = value

    def next_custom_key(self) -> str:
        used = {field.key for field in self._categories.get(CUSTOM, [])}
        index = len(used) + 1
        while f"{CUSTOM_KEY_PREFIX}{index}" in used:
            index += 1
        return f"{CUSTOM_KEY_PREFIX}{index}"

    def add_custom_field(self) -> MetadataField:
        """
        Append an empty custom field, creating the 'custom' category if needed.
        
        Returns:
            The new field
        """
        field = MetadataField(
            key=self.next_custom_key(),
            label=CUSTOM_FIELD_LABEL,
            value='',
            category=CUSTOM,
            editable=True,
            is_custom=True,
        )
        self.ensure_category(CUSTOM).append(field)
        return field

    def remove_custom_field(self, key: str) -> None:
        if CUSTOM in self._categories:
            self._categories[CUSTOM] = [f for f in self._categories[CUSTOM] if f.key != key]

    def rename_custom_field(self, old_key: str, new_key: str, new_value: FieldValue) -> None:
        """
        Change a custom field's key, label and value together.
        
        Raises:
            DuplicateFieldKeyError: If another custom field already uses new_key
        """
        field = self.get_field(CUSTOM, old_key)
        if field is None:
            return
        if new_key != old_key and self.get_field(CUSTOM, new_key) is not None:
            raise DuplicateFieldKeyError(f"A custom field named '{new_key}' already exists")
        field.key = new_key
        field.label = new_key
        field.value = new_value

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            name: [field.to_dict() for field in fields]
            for name, fields in self._categories.items()
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'MetadataModel':
        """
        Build a model from the exported JSON shape.
        
        Raises:
            ValueError: If the shape is not category -> list of field objects
        """
        model = cls()
        for category, fields in data.items():
            if not isinstance(fields, list):
                raise ValueError(f"Category '{category}' must map to a list of fields")
            model.ensure_category(category)
            for item in fields:
                if not isinstance(item, Mapping) or 'key' not in item:
                    raise ValueError(f"Invalid field entry in category '{category}'")
                model.add_field(MetadataField.from_dict(item, category), category)
        return model


def resolve_active_category(model: Optional[MetadataModel], requested: Optional[str] = None) -> str:
    """
    Pick the category tab to show.
    
    Returns the requested category when it is visible, otherwise the first
    visible category, otherwise 'basic'.
    """
    if model is None:
        return BASIC
    visible = model.visible_categories()
    if requested in visible:
        return requested
    return visible[0] if visible else BASIC


def file_name_field(filename: str) -> MetadataField:
    return MetadataField(
        key=FILE_NAME_KEY,
        label='File Name',
        value=filename,
        category=BASIC,
        editable=False,
    )
