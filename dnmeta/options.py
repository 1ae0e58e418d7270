# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Editor options

Named, typed settings shared by the writer, the JSON exporter and the
editor session.

Copyright 2025 DNAi inc.
"""

from typing import Any, Dict, Optional


class EditorOptions:
    """
    Option store with validation.
    
    Examples:
        >>> options = EditorOptions()
        >>> options.set_option('JsonIndent', '4')
        >>> options.get_option('JsonIndent')
        4
    """

    def __init__(self, **overrides: Any):
        self.options: Dict[str, Any] = {}
        self._initialize_default_options()
        for option_name, value in overrides.items():
            self.set_option(option_name, value)

    @staticmethod
    def available_options() -> Dict[str, Dict[str, Any]]:
        """
        Return a dictionary of available options.
        
        Returns:
            Dictionary mapping option names to their metadata:
            {
                'OptionName': {
                    'description': 'Description of the option',
                    'type': 'bool|str|int',
                    'default': default_value,
                },
                ...
            }
        """
        return {
            'OutputPrefix': {
                'description': 'Prefix added to the file name of edited downloads',
                'type': 'str',
                'default': 'edited_',
            },
            'JsonIndent': {
                'description': 'Indentation of JSON exports',
                'type': 'int',
                'default': 2,
            },
            'JsonSuffix': {
                'description': 'Suffix replacing the extension of JSON exports',
                'type': 'str',
                'default': '_metadata.json',
            },
            'SynthesizeExif': {
                'description': 'Create a new EXIF block when saving a JPEG that has none',
                'type': 'bool',
                'default': True,
            },
            'ByteOrder': {
                'description': 'Byte order of synthesized EXIF blocks (II or MM)',
                'type': 'str',
                'default': 'II',
            },
            'MaxFileSize': {
                'description': 'Largest accepted file in bytes (0 for unlimited)',
                'type': 'int',
                'default': 0,
            },
        }

    def _initialize_default_options(self) -> None:
        for option_name, option_info in self.available_options().items():
            self.options[option_name] = option_info['default']

    def set_option(self, option_name: str, value: Any) -> None:
        """
        Set an option value.
        
        Args:
            option_name: Name of the option (e.g., 'OutputPrefix')
            value: Value to set, coerced to the option's type
            
        Raises:
            ValueError: If the option name is unknown or the value cannot be coerced
        """
        available = self.available_options()
        if option_name not in available:
            raise ValueError(f"Unknown option: {option_name}. Use available_options() to see valid options.")

        expected_type = available[option_name]['type']
        if expected_type == 'bool' and not isinstance(value, bool):
            if isinstance(value, str):
                value = value.lower() in ('true', '1', 'yes', 'on')
            else:
                value = bool(value)
        elif expected_type == 'int' and not isinstance(value, int):
            try:
                value = int(value)
            except (ValueError, TypeError):
                raise ValueError(f"Option {option_name} requires int value, got {type(value).__name__}")
        elif expected_type == 'str':
            value = str(value)

        if option_name == 'ByteOrder' and value not in ('II', 'MM'):
            raise ValueError(f"Option ByteOrder must be II or MM, got {value}")

        self.options[option_name] = value

    def get_option(self, option_name: str, default: Optional[Any] = None) -> Any:
        return self.options.get(option_name, default)
