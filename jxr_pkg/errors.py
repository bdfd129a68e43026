"""
Error types raised while generating a site.

Every failure carries the offending path (when there is one) and a
machine-checkable reason code, so callers can tell a missing layout from a
malformed front matter block without parsing messages.
"""

from enum import Enum
from typing import Optional


class Reason(Enum):
    READ = 'read'
    WRITE = 'write'
    CREATE_DIR = 'create-dir'
    FRONT_MATTER_MISSING = 'front-matter-missing'
    FRONT_MATTER_INVALID = 'front-matter-invalid'
    TITLE_MISSING = 'title-missing'
    MARKDOWN_MISSING = 'markdown-missing'
    DEFAULTS_INVALID = 'defaults-invalid'
    SETTINGS_INVALID = 'settings-invalid'
    TEMPLATE_SYNTAX = 'template-syntax'
    TEMPLATE_RUNTIME = 'template-runtime'
    LAYOUT_MISSING = 'layout-missing'
    ROOT_LAYOUT_MISSING = 'root-layout-missing'
    LISTING_MISSING = 'listing-missing'
    OUTSIDE_ROOT = 'outside-root'
    INVALID_DATE = 'invalid-date'
    DUPLICATE_PATH = 'duplicate-path'


class JxrError(Exception):
    """Base class for all generation failures."""

    kind = 'error'

    def __init__(self, message: str, path=None, reason: Optional[Reason] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.reason = reason

    def __str__(self):
        if self.path is not None:
            return f"{self.message}: {self.path}"
        return self.message


class IOFailure(JxrError):
    kind = 'io'


class DecodeError(JxrError):
    """Malformed or schema-violating YAML (front matter, defaults, settings)."""

    kind = 'decode'


class TemplateRegistrationError(JxrError):
    kind = 'template-registration'


class TemplateRenderError(JxrError):
    kind = 'template-render'


class MissingLayoutError(JxrError):
    kind = 'missing-layout'

    def __init__(self, message: str, path=None, reason: Optional[Reason] = None, layout_name: Optional[str] = None):
        super().__init__(message, path, reason)
        self.layout_name = layout_name


class PathError(JxrError):
    kind = 'path'


class DuplicatePathError(JxrError):
    kind = 'duplicate-path'


class ItemError(JxrError):
    """Contract violation that does not fit any other kind."""

    kind = 'item'


def format_error_chain(error: BaseException) -> str:
    """Render an error and its chained causes, outermost first."""
    lines = [f"Error: {error}"]
    seen = {id(error)}
    cause = error.__cause__ or error.__context__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        lines.append(f"  caused by: {type(cause).__name__}: {cause}")
        cause = cause.__cause__ or cause.__context__
    return "\n".join(lines)
