"""Test configuration and fixtures for jxr tests."""

import os
import logging
import sys
import pytest
import tempfile
import shutil
from pathlib import Path
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

LAYOUT_TEMPLATE = "<html><head><title>{{ title }}</title></head><body>{{ body }}</body></html>\n"
DEFAULT_TEMPLATE = "<main>{{ body }}</main>"
POST_TEMPLATE = '<article data-date="{{ date }}">{{ body }}</article>'
INDEX_TEMPLATE = "<section>{{ body }}{% for item in items %}[{{ item.title }}]{% endfor %}</section>"
LISTING_TEMPLATE = "<ul>{% for item in items %}<li>{{ item.title }}|{{ item.date }}|{{ item.path }}</li>{% endfor %}</ul>"


def write_file(path, text):
    """Write ``text`` to ``path``, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')
    return path


def content(title=None, body='', **fields):
    """Build a content file with YAML front matter."""
    meta = dict(fields)
    if title is not None:
        meta['title'] = title
    return "---\n" + yaml.dump(meta, default_flow_style=False) + "---\n" + body


@pytest.fixture(autouse=True)
def reset_jxr_logger():
    """Detach handlers added to the jxr logger by a test."""
    yield
    logger = logging.getLogger('jxr')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir).resolve()
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def source_dir(temp_dir):
    """Create a source tree with the standard layouts and no content."""
    source_dir = temp_dir / 'site'
    templates = source_dir / '_layouts'
    write_file(templates / 'layout.jinja', LAYOUT_TEMPLATE)
    write_file(templates / 'default.jinja', DEFAULT_TEMPLATE)
    write_file(templates / 'post.jinja', POST_TEMPLATE)
    write_file(templates / 'index.jinja', INDEX_TEMPLATE)
    return source_dir


@pytest.fixture
def output_dir(temp_dir):
    """Create an output directory."""
    output_dir = temp_dir / 'output'
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def blog_site(source_dir):
    """Create a source tree with a dated blog and a listing template."""
    write_file(source_dir / '2023-05-01-hello.md', content('Hello', '# Hi\n'))
    write_file(source_dir / 'about.md', content('About', 'About this site.\n', description='Who we are'))
    blog = source_dir / 'blog'
    write_file(blog / 'defaults.yml', yaml.dump({'layout': 'post'}))
    write_file(blog / 'listing.jinja', LISTING_TEMPLATE)
    write_file(blog / '2021-01-15-oldest.md', content('Oldest', 'First post.\n'))
    write_file(blog / '2023-11-02-newest.md', content('Newest', 'Latest post.\n'))
    write_file(blog / '2022-06-30-middle.md', content('Middle', 'Another post.\n'))
    return source_dir
