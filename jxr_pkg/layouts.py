"""
Layout registry.

Walks the source tree once and compiles every template file with Jinja2.
Templates are keyed by file stem; listing templates are additionally keyed
by the directory that contains them.
"""

import os
import logging
from pathlib import Path
from typing import Dict, Optional

from jinja2 import DictLoader, Environment, StrictUndefined, Template, TemplateSyntaxError

from .errors import IOFailure, Reason, TemplateRegistrationError

logger = logging.getLogger('jxr')

ROOT_LAYOUT = 'layout'


def _blank_none(value):
    """Print ``None`` context values as empty strings."""
    return '' if value is None else value


def create_environment(sources: Dict[str, str]) -> Environment:
    """Create the Jinja2 environment shared by every layout of a run."""
    return Environment(
        loader=DictLoader(sources),
        undefined=StrictUndefined,
        finalize=_blank_none,
        keep_trailing_newline=True,
    )


class LayoutSet:
    """Compiled layouts and listing templates, read-only once built."""

    def __init__(self, env: Environment, layouts: Dict[str, Template], listings: Dict[Path, Template],
                 root_layout: str = ROOT_LAYOUT):
        self.env = env
        self._layouts = dict(layouts)
        self._listings = dict(listings)
        self.root_layout = root_layout

    def get(self, name: str) -> Optional[Template]:
        return self._layouts.get(name)

    def listing_for(self, directory: Path) -> Optional[Template]:
        return self._listings.get(Path(directory))

    @property
    def root(self) -> Optional[Template]:
        return self._layouts.get(self.root_layout)

    @property
    def names(self):
        return sorted(self._layouts)

    @property
    def listing_dirs(self):
        return sorted(self._listings)

    def __contains__(self, name):
        return name in self._layouts

    def __len__(self):
        return len(self._layouts)


def _read_template(path: str) -> str:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except (IOError, OSError, UnicodeDecodeError) as e:
        raise IOFailure("Failed to read template", path, Reason.READ) from e


def build_layouts(root_path, template_extension: str = '.jinja', listing_template: str = 'listing.jinja',
                  root_layout: str = ROOT_LAYOUT) -> LayoutSet:
    """
    Discover and compile every template under ``root_path``.

    A later template with an already-registered stem replaces the earlier one.
    Directories are walked in sorted order, so "later" is deterministic.
    """
    root_path = Path(root_path).resolve()
    sources: Dict[str, str] = {}
    origins: Dict[str, str] = {}
    listing_sources: Dict[Path, str] = {}
    listing_origins: Dict[Path, str] = {}

    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
        for filename in sorted(filenames):
            if filename.startswith('.'):
                continue
            file_path = os.path.join(dirpath, filename)

            if filename == listing_template:
                directory = Path(dirpath)
                if directory in listing_sources:
                    logger.warning(f"Listing template {file_path} replaces {listing_origins[directory]}")
                listing_sources[directory] = _read_template(file_path)
                listing_origins[directory] = file_path

            stem, ext = os.path.splitext(filename)
            if ext == template_extension:
                if stem in sources:
                    logger.warning(f"Layout '{stem}' from {file_path} replaces {origins[stem]}")
                sources[stem] = _read_template(file_path)
                origins[stem] = file_path

    env = create_environment(sources)

    layouts: Dict[str, Template] = {}
    for name in sources:
        try:
            layouts[name] = env.get_template(name)
        except TemplateSyntaxError as e:
            raise TemplateRegistrationError(
                f"Invalid template syntax in layout '{name}'", origins[name], Reason.TEMPLATE_SYNTAX
            ) from e

    listings: Dict[Path, Template] = {}
    for directory, source in listing_sources.items():
        try:
            listings[directory] = env.from_string(source)
        except TemplateSyntaxError as e:
            raise TemplateRegistrationError(
                "Invalid template syntax in listing template", listing_origins[directory], Reason.TEMPLATE_SYNTAX
            ) from e

    logger.debug(f"Registered {len(layouts)} layouts and {len(listings)} listing templates from {root_path}")
    return LayoutSet(env, layouts, listings, root_layout)
