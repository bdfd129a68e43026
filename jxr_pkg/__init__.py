"""
jxr - Generate a static site.

jxr turns a directory of Markdown files with YAML front matter into a tree of
HTML pages using Jinja2 layouts, with dated permalinks and per-directory
listing pages.
"""

__version__ = "1.0.0"
__author__ = "Joe Moon"
__email__ = "joe@xoxomoon.com"

from .core import Jxr, ContentItem, ContentTreeBuilder, Renderer
from .errors import JxrError

__all__ = ['Jxr', 'ContentItem', 'ContentTreeBuilder', 'Renderer', 'JxrError']
