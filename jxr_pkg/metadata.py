"""
Front matter, permalink and per-directory defaults parsing.
"""

import os
import re
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Tuple

import yaml

from .errors import DecodeError, IOFailure, ItemError, PathError, Reason

logger = logging.getLogger('jxr')

OUTPUT_EXTENSION = '.html'

# A delimiter is a line holding only "---".
FRONT_MATTER_DELIMITER = re.compile(r'^---[ \t]*\r?$\n?', re.MULTILINE)
DATED_NAME = re.compile(r'^(\d{4})-(\d{2})-(\d{2})-(.+)$')


@dataclass(frozen=True)
class FrontMatter:
    title: str
    description: Optional[str] = None
    layout: Optional[str] = None


def _optional_text(meta, key, source_path):
    value = meta.get(key)
    if value is not None and not isinstance(value, str):
        raise DecodeError(f"Front matter field '{key}' must be text", source_path, Reason.FRONT_MATTER_INVALID)
    return value


def parse_metadata(raw_text: str, source_path=None) -> Tuple[FrontMatter, str]:
    """
    Split a content file into its front matter and markdown body.

    The text between the first and second delimiter lines is YAML and must
    provide ``title``; ``description`` and ``layout`` are optional. Everything
    after the second delimiter is returned untouched as markdown.
    """
    parts = FRONT_MATTER_DELIMITER.split(raw_text.lstrip('\ufeff'), maxsplit=2)
    if len(parts) < 2:
        raise DecodeError("Error parsing yaml front matter", source_path, Reason.FRONT_MATTER_MISSING)
    if len(parts) < 3:
        raise ItemError("Error extracting markdown from file", source_path, Reason.MARKDOWN_MISSING)

    try:
        meta = yaml.safe_load(parts[1])
    except yaml.YAMLError as e:
        raise DecodeError("Invalid YAML front matter", source_path, Reason.FRONT_MATTER_INVALID) from e

    if not isinstance(meta, dict):
        raise DecodeError("Front matter must be a mapping", source_path, Reason.FRONT_MATTER_INVALID)
    if meta.get('title') is None:
        raise DecodeError("Front matter is missing required field 'title'", source_path, Reason.TITLE_MISSING)

    front_matter = FrontMatter(
        title=_optional_text(meta, 'title', source_path),
        description=_optional_text(meta, 'description', source_path),
        layout=_optional_text(meta, 'layout', source_path),
    )
    return front_matter, parts[2]


def derive_path(source_path, root_path, output_extension: str = OUTPUT_EXTENSION) -> Tuple[PurePosixPath, Optional[date]]:
    """
    Compute the output-relative path and filename date of a content file.

    ``2023-05-01-hello.md`` becomes ``2023/05/01/hello.html`` next to where the
    source sits; any other name keeps its place with the output extension.
    """
    source_path = Path(source_path)
    root_path = Path(root_path)

    file_date = None
    match = DATED_NAME.match(source_path.stem)
    if match:
        year, month, day, slug = match.groups()
        try:
            file_date = date(int(year), int(month), int(day))
        except ValueError as e:
            raise PathError(f"Invalid date in file name '{source_path.name}'", source_path, Reason.INVALID_DATE) from e
        path = source_path.parent / f"{file_date.year:04d}" / f"{file_date.month:02d}" / f"{file_date.day:02d}" / slug
    else:
        path = source_path.parent / source_path.stem

    try:
        relative = path.relative_to(root_path)
    except ValueError as e:
        raise PathError(f"File is outside the source root {root_path}", source_path, Reason.OUTSIDE_ROOT) from e

    logical = PurePosixPath(*relative.parts)
    return logical.with_name(logical.name + output_extension), file_date


class DefaultsTable:
    """Default layout names keyed by directory."""

    def __init__(self, root_path, layouts: Dict[Path, str] = None):
        self.root_path = Path(root_path)
        self._layouts = dict(layouts or {})

    def get(self, directory) -> Optional[str]:
        return self._layouts.get(Path(directory))

    def layout_for(self, directory) -> Optional[str]:
        """Return the default of the nearest enclosing directory, if any."""
        directory = Path(directory)
        for candidate in (directory, *directory.parents):
            layout = self._layouts.get(candidate)
            if layout is not None:
                return layout
            if candidate == self.root_path:
                break
        return None

    def __len__(self):
        return len(self._layouts)


def load_default_layout(path) -> str:
    """Read the ``layout`` field of a defaults file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (IOError, OSError, UnicodeDecodeError) as e:
        raise IOFailure("Failed to read defaults file", path, Reason.READ) from e
    except yaml.YAMLError as e:
        raise DecodeError("Invalid YAML in defaults file", path, Reason.DEFAULTS_INVALID) from e

    if not isinstance(data, dict) or not isinstance(data.get('layout'), str):
        raise DecodeError("Defaults file must define a 'layout' name", path, Reason.DEFAULTS_INVALID)
    return data['layout']


def build_defaults(root_path, defaults_file: str = 'defaults.yml') -> DefaultsTable:
    """
    Scan the source tree for per-directory default layouts.

    A directory's default comes from ``defaults_file`` inside it or, failing
    that, from a ``<dirname>.yml`` file next to it.
    """
    root_path = Path(root_path).resolve()
    layouts: Dict[Path, str] = {}

    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
        directory = Path(dirpath)

        candidate = directory / defaults_file
        if defaults_file not in filenames and directory != root_path:
            candidate = directory.with_name(directory.name + '.yml')
        if candidate.is_file():
            layouts[directory] = load_default_layout(candidate)
            logger.debug(f"Default layout for {directory}: {layouts[directory]}")

    return DefaultsTable(root_path, layouts)
