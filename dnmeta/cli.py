# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Command-line interface for dnmeta

Copyright 2025 DNAi inc.
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dnmeta.editor import MetadataEditor, OutputFile
from dnmeta.exceptions import DNMetaError
from dnmeta.model import MetadataModel

logger = logging.getLogger(__name__)


def format_output(metadata: MetadataModel, format_type: str = "text") -> str:
    """
    Format a model for printing.
    
    Args:
        metadata: Model to print
        format_type: 'text' or 'json'
    """
    if format_type == "json":
        return json.dumps(metadata.to_dict(), indent=2, ensure_ascii=False)
    lines = []
    for category in metadata.visible_categories():
        lines.append(f"[{category}]")
        for field in metadata.fields(category):
            marker = '' if field.editable else ' (read-only)'
            lines.append(f"  {field.label}: {field.value}{marker}")
    return "\n".join(lines)


def parse_field_assignments(args: List[str]) -> Dict[Tuple[str, str], str]:
    """
    Parse CATEGORY.KEY=VALUE arguments.
    
    Raises:
        ValueError: If an argument is not in that form
    """
    assignments = {}
    for arg in args:
        target, sep, value = arg.partition('=')
        category, dot, key = target.partition('.')
        if not sep or not dot or not category or not key:
            raise ValueError(f"Expected CATEGORY.KEY=VALUE, got '{arg}'")
        assignments[(category, key)] = value
    return assignments


def _write_output(output: OutputFile, source: Path, target: Optional[str]) -> Path:
    path = Path(target) if target else source.with_name(output.filename)
    path.write_bytes(output.data)
    return path


async def _load(editor: MetadataEditor, path: Path, mime: Optional[str]) -> MetadataModel:
    guessed = mime or mimetypes.guess_type(path.name)[0] or ''
    return await editor.select_file(path.read_bytes(), path.name, guessed)


async def _run(args: argparse.Namespace) -> int:
    editor = MetadataEditor()
    source = Path(args.file)
    metadata = await _load(editor, source, args.mime)

    if args.command == 'show':
        print(format_output(metadata, 'json' if args.json else 'text'))
        return 0

    if args.command == 'export':
        path = _write_output(editor.export_json(), source, args.output)
        print(f"Metadata exported to {path}")
        return 0

    if args.command == 'set':
        try:
            assignments = parse_field_assignments(args.assignments)
        except ValueError as e:
            print(f"Error: {str(e)}", file=sys.stderr)
            return 2
        for (category, key), value in assignments.items():
            if metadata.get_field(category, key) is None:
                print(f"Error: {source.name} has no field {category}.{key}", file=sys.stderr)
                return 1
            editor.update_field(category, key, value)
    else:
        imported = editor.exporter.load(Path(args.json_file).read_bytes())
        count = editor.apply_model(imported)
        logger.info("Applied %d field(s) from %s", count, args.json_file)

    editor.set_editing(True)
    output = await editor.save()
    path = _write_output(output, source, args.output)
    print(f"Metadata written successfully to {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dnmeta',
        description="dnmeta - View, edit and export image and audio metadata",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show metadata
  dnmeta show photo.jpg

  # Export to photo_metadata.json
  dnmeta export photo.jpg

  # Edit and write edited_photo.jpg
  dnmeta set photo.jpg basic.title="Sunset" camera.iso=200
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--mime', help='MIME type to assume for the input file')
    subparsers = parser.add_subparsers(dest='command', required=True)

    show = subparsers.add_parser('show', help='Print the metadata of a file')
    show.add_argument('file')
    show.add_argument('--json', action='store_true', help='Print as JSON')

    export = subparsers.add_parser('export', help='Export metadata to JSON')
    export.add_argument('file')
    export.add_argument('-o', '--output', help='Output path')

    edit = subparsers.add_parser('set', help='Edit fields and write an edited copy')
    edit.add_argument('file')
    edit.add_argument('assignments', nargs='+', metavar='CATEGORY.KEY=VALUE')
    edit.add_argument('-o', '--output', help='Output path')

    apply = subparsers.add_parser('apply', help='Apply values from a JSON export')
    apply.add_argument('file')
    apply.add_argument('json_file', metavar='JSON')
    apply.add_argument('-o', '--output', help='Output path')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    try:
        return asyncio.run(_run(args))
    except DNMetaError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
