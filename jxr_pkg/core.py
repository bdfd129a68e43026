import os
import time
import logging
from dataclasses import dataclass, field
import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, Iterator, List, Optional

import mistune
from jinja2 import TemplateError

from .errors import (
    DuplicatePathError, IOFailure, MissingLayoutError, PathError, Reason, TemplateRenderError,
)
from .layouts import LayoutSet, build_layouts, ROOT_LAYOUT
from .metadata import DefaultsTable, OUTPUT_EXTENSION, build_defaults, derive_path, parse_metadata

DEFAULT_LAYOUT = 'default'
CONTENT_EXTENSION = '.md'
INDEX_STEM = 'index'


class ItemKind(Enum):
    DOCUMENT = 'document'
    LISTING = 'listing'


@dataclass
class ContentItem:
    """A page to generate: a markdown document or a synthesized listing."""

    kind: ItemKind
    source_path: Path
    logical_path: PurePosixPath
    layout_name: str
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime.date] = None
    markdown: Optional[str] = None
    body: Optional[str] = None
    children: List['ContentItem'] = field(default_factory=list)

    @property
    def is_listing(self) -> bool:
        return self.kind is ItemKind.LISTING

    @property
    def is_index(self) -> bool:
        return not self.is_listing and self.source_path.stem == INDEX_STEM


def sort_by_date(items: List[ContentItem]) -> List[ContentItem]:
    """Newest first; undated items follow in their original order."""
    dated = sorted((item for item in items if item.date is not None), key=lambda item: item.date, reverse=True)
    undated = [item for item in items if item.date is None]
    return dated + undated


def format_date(value: Optional[datetime.date]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime('%Y-%m-%d')


def create_markdown_parser():
    """Create a Mistune markdown parser with a custom renderer."""
    class CustomRenderer(mistune.HTMLRenderer):
        def __init__(self):
            super().__init__(escape=False)

        def block_code(self, code, info=None):
            escaped_code = mistune.escape(code)
            if info and info.strip():
                lang = mistune.escape(info.strip().split(None, 1)[0])
                return '<pre><code class="language-{}">{}</code></pre>\n'.format(lang, escaped_code)
            return '<pre><code>{}</code></pre>\n'.format(escaped_code)

    return mistune.create_markdown(
        renderer=CustomRenderer(),
        plugins=['table', 'task_lists', 'strikethrough']
    )


class ContentTreeBuilder:
    """
    Turn a source tree into content items, depth-first.

    Entries are visited in name order. Hidden entries and non-markdown files
    are skipped. An ``index.md`` is held back until its directory is
    exhausted and then emitted with every other item of that directory
    (subdirectories included) as its children.
    """

    def __init__(self, root_path, defaults: Optional[DefaultsTable] = None, default_layout: str = DEFAULT_LAYOUT,
                 output_extension: str = OUTPUT_EXTENSION):
        self.root_path = Path(root_path).resolve()
        self.defaults = defaults if defaults is not None else DefaultsTable(self.root_path)
        self.default_layout = default_layout
        self.output_extension = output_extension
        self.logger = logging.getLogger('jxr')

    def resolve_layout(self, explicit: Optional[str], directory: Path) -> str:
        """Front matter layout, else the nearest directory default, else the global default."""
        if explicit:
            return explicit
        return self.defaults.layout_for(directory) or self.default_layout

    def load_document(self, file_path: Path) -> ContentItem:
        """Parse a single markdown file into a document item."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                raw_text = f.read()
        except (IOError, OSError, UnicodeDecodeError) as e:
            raise IOFailure("Failed to read content file", file_path, Reason.READ) from e

        front_matter, markdown_text = parse_metadata(raw_text, file_path)
        logical_path, file_date = derive_path(file_path, self.root_path, self.output_extension)

        return ContentItem(
            kind=ItemKind.DOCUMENT,
            source_path=file_path,
            logical_path=logical_path,
            layout_name=self.resolve_layout(front_matter.layout, file_path.parent),
            title=front_matter.title,
            description=front_matter.description,
            date=file_date,
            markdown=markdown_text,
        )

    def _scan(self, directory: Path):
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            raise IOFailure("Failed to read directory", directory, Reason.READ) from e
        return entries

    def _walk(self, directory: Path) -> Iterator[ContentItem]:
        collected: List[ContentItem] = []
        index: Optional[ContentItem] = None

        for entry in self._scan(directory):
            # skip dotfiles
            if entry.name.startswith('.'):
                continue

            path = Path(entry.path)
            if entry.is_dir():
                for item in self._walk(path):
                    collected.append(item)
                    yield item
                continue

            # TODO: copy non-markdown assets to the output directory
            if path.suffix != CONTENT_EXTENSION:
                continue

            item = self.load_document(path)
            self.logger.debug(f"Parsed {path} -> {item.logical_path} (layout '{item.layout_name}')")
            if item.is_index:
                index = item
                continue
            collected.append(item)
            yield item

        if index is not None:
            index.children = collected
            yield index

    def iter_items(self) -> Iterator[ContentItem]:
        """Lazily yield every content item of the tree."""
        if not self.root_path.is_dir():
            raise IOFailure("Source directory not found", self.root_path, Reason.READ)
        yield from self._walk(self.root_path)

    def build(self) -> List[ContentItem]:
        return list(self.iter_items())


def build_listing(directory, documents: List[ContentItem], root_path,
                  output_extension: str = OUTPUT_EXTENSION) -> Optional[ContentItem]:
    """
    Synthesize the listing page of ``directory`` from the documents under it.

    Returns None when no document lives under the directory.
    """
    directory = Path(directory)
    root_path = Path(root_path)
    children = [
        item for item in documents
        if not item.is_listing and directory in item.source_path.parents
    ]
    if not children:
        return None

    try:
        relative = directory.relative_to(root_path)
    except ValueError as e:
        raise PathError("Listing directory is outside the source root", directory, Reason.OUTSIDE_ROOT) from e

    return ContentItem(
        kind=ItemKind.LISTING,
        source_path=directory,
        logical_path=PurePosixPath(*relative.parts, INDEX_STEM + output_extension),
        layout_name='listing',
        children=sort_by_date(children),
    )


class Renderer:
    """Two-stage rendering: item layout (or listing template), then the root layout."""

    def __init__(self, layouts: LayoutSet, markdown_parser=None):
        self.layouts = layouts
        self.markdown_parser = markdown_parser or create_markdown_parser()

    def markdown_filter(self, text):
        """Convert markdown text to HTML."""
        return self.markdown_parser(text)

    def fill_body(self, item: ContentItem) -> None:
        if item.body is None and item.markdown is not None:
            item.body = self.markdown_filter(item.markdown)

    def build_context(self, item: ContentItem) -> Dict:
        """Template context for ``item``; children of a listing are summaries without a body."""
        self.fill_body(item)
        if item.is_listing:
            items = [self.summary_context(child) for child in sort_by_date(item.children)]
        else:
            items = [self.build_context(child) for child in sort_by_date(item.children)]
        return {
            'title': item.title,
            'body': item.body,
            'date': format_date(item.date),
            'description': item.description,
            'path': str(item.logical_path),
            'items': items,
        }

    def summary_context(self, item: ContentItem) -> Dict:
        return {
            'title': item.title,
            'body': None,
            'date': format_date(item.date),
            'description': item.description,
            'path': str(item.logical_path),
            'items': [],
        }

    def _render(self, template, context: Dict, item: ContentItem, name: str) -> str:
        try:
            return template.render(**context)
        except TemplateError as e:
            raise TemplateRenderError(f"Failed to render template '{name}'", item.source_path,
                                      Reason.TEMPLATE_RUNTIME) from e

    def render(self, item: ContentItem) -> str:
        """Render ``item`` to a complete HTML page."""
        if item.is_listing:
            template = self.layouts.listing_for(item.source_path)
            if template is None:
                raise MissingLayoutError("missing listing template", item.source_path, Reason.LISTING_MISSING,
                                         layout_name=item.layout_name)
        else:
            template = self.layouts.get(item.layout_name)
            if template is None:
                raise MissingLayoutError(f"missing layout '{item.layout_name}'", item.source_path,
                                         Reason.LAYOUT_MISSING, layout_name=item.layout_name)

        context = self.build_context(item)
        context['body'] = self._render(template, context, item, item.layout_name)

        root = self.layouts.root
        if root is None:
            raise MissingLayoutError(f"missing root layout '{self.layouts.root_layout}'", item.source_path,
                                     Reason.ROOT_LAYOUT_MISSING, layout_name=self.layouts.root_layout)
        return self._render(root, context, item, self.layouts.root_layout)


def write_item(output_root, item: ContentItem, rendered_html: str) -> Path:
    """Write a rendered item below ``output_root`` at its logical path."""
    destination = Path(output_root).joinpath(*item.logical_path.parts)
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IOFailure("Failed to create output directory", destination.parent, Reason.CREATE_DIR) from e
    try:
        destination.write_bytes(rendered_html.encode('utf-8'))
    except OSError as e:
        raise IOFailure("Failed to write output file", destination, Reason.WRITE) from e
    return destination


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Starting site build",
            "Site build completed in",
            "Total documents generated:",
            "Total listings generated:",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class Jxr:
    def __init__(self, root_path='.', output_path='.', template_extension='.jinja', listing_template='listing.jinja',
                 default_layout=DEFAULT_LAYOUT, root_layout=ROOT_LAYOUT, defaults_file='defaults.yml',
                 verbose=False, log_file=None):
        self.root_path = Path(root_path).resolve()
        self.output_path = Path(output_path).expanduser()
        self.template_extension = template_extension
        self.listing_template = listing_template
        self.default_layout = default_layout
        self.root_layout = root_layout
        self.defaults_file = defaults_file
        self.verbose = verbose
        self.log_file = log_file
        self.documents_generated = 0
        self.listings_generated = 0
        self.written: Dict[PurePosixPath, Path] = {}

        self.setup_logging()

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('jxr')
        self.logger.setLevel(logging.DEBUG)

        # Replace handlers left by an earlier instance in this process
        for handler in list(self.logger.handlers):
            if getattr(handler, 'jxr_owned', False):
                self.logger.removeHandler(handler)
                handler.close()

        # Console handler with filter
        console_handler = logging.StreamHandler()
        if self.verbose:
            console_handler.setLevel(logging.DEBUG)
        else:
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
        console_formatter = logging.Formatter('%(message)s')
        console_handler.setFormatter(console_formatter)
        console_handler.jxr_owned = True
        self.logger.addHandler(console_handler)

        # File handler for all logs
        if self.log_file:
            log_dir = os.path.dirname(os.path.abspath(self.log_file))
            os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(self.log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            file_handler.setFormatter(file_formatter)
            file_handler.jxr_owned = True
            self.logger.addHandler(file_handler)

    def load_layouts(self) -> LayoutSet:
        return build_layouts(self.root_path, self.template_extension, self.listing_template, self.root_layout)

    def load_defaults(self) -> DefaultsTable:
        return build_defaults(self.root_path, self.defaults_file)

    def claim(self, item: ContentItem) -> None:
        """Reserve the item's output path; two items may not share one."""
        owner = self.written.get(item.logical_path)
        if owner is not None:
            raise DuplicatePathError(
                f"Output path {item.logical_path} is already produced by {owner}", item.source_path,
                Reason.DUPLICATE_PATH
            )
        self.written[item.logical_path] = item.source_path

    def emit(self, renderer: Renderer, item: ContentItem) -> Path:
        self.claim(item)
        destination = write_item(self.output_path, item, renderer.render(item))
        self.logger.debug(f"Generated HTML: {destination}")
        return destination

    def build_listings(self, layouts: LayoutSet, documents: List[ContentItem]) -> List[ContentItem]:
        listings = []
        for directory in layouts.listing_dirs:
            listing = build_listing(directory, documents, self.root_path)
            if listing is None:
                self.logger.debug(f"No documents under {directory}, skipping listing")
                continue
            listings.append(listing)
        return listings

    def build(self):
        """Main build process."""
        start_time = time.time()
        self.logger.info(f"Starting site build from {self.root_path}")

        self.written = {}
        self.documents_generated = 0
        self.listings_generated = 0
        layouts = self.load_layouts()
        defaults = self.load_defaults()
        renderer = Renderer(layouts)
        builder = ContentTreeBuilder(self.root_path, defaults, self.default_layout)

        documents = []
        for item in builder.iter_items():
            self.emit(renderer, item)
            documents.append(item)
            self.documents_generated += 1

        # Listings aggregate documents from anywhere under their directory
        for listing in self.build_listings(layouts, documents):
            self.emit(renderer, listing)
            self.listings_generated += 1

        total_time = time.time() - start_time
        self.logger.info(f"Site build completed in {total_time:.6f} seconds.")
        self.logger.info(f"Total documents generated: {self.documents_generated}")
        self.logger.info(f"Total listings generated: {self.listings_generated}")
        return documents
