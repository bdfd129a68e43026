"""Tests for front matter, permalink and defaults parsing."""

import pytest
from datetime import date
from pathlib import Path, PurePosixPath

import yaml

from jxr_pkg.errors import DecodeError, IOFailure, ItemError, PathError, Reason
from jxr_pkg.metadata import DefaultsTable, FrontMatter, build_defaults, derive_path, parse_metadata

from conftest import write_file


class TestParseMetadata:
    """Test cases for splitting front matter from markdown."""

    def test_all_fields(self):
        text = "---\ntitle: Hello\ndescription: A greeting\nlayout: post\n---\n# Hi\n"
        front_matter, markdown = parse_metadata(text, 'hello.md')

        assert front_matter == FrontMatter(title='Hello', description='A greeting', layout='post')
        assert markdown == "# Hi\n"

    def test_optional_fields_absent(self):
        front_matter, _ = parse_metadata("---\ntitle: Hello\n---\nbody\n")

        assert front_matter.description is None
        assert front_matter.layout is None

    def test_unknown_fields_ignored(self):
        front_matter, _ = parse_metadata("---\ntitle: Hello\ntags: [a, b]\n---\nbody\n")
        assert front_matter.title == 'Hello'

    def test_body_keeps_later_delimiters(self):
        text = "---\ntitle: Rules\n---\nabove\n---\nbelow\n"
        _, markdown = parse_metadata(text)
        assert markdown == "above\n---\nbelow\n"

    def test_text_before_first_delimiter_is_dropped(self):
        front_matter, markdown = parse_metadata("preamble\n---\ntitle: Late\n---\nbody")
        assert front_matter.title == 'Late'
        assert markdown == 'body'

    def test_crlf_delimiters(self):
        front_matter, markdown = parse_metadata("---\r\ntitle: Windows\r\n---\r\nbody\r\n")
        assert front_matter.title == 'Windows'
        assert markdown == "body\r\n"

    def test_missing_title(self):
        with pytest.raises(DecodeError) as excinfo:
            parse_metadata("---\ndescription: no title\n---\nbody\n", '/site/untitled.md')

        assert excinfo.value.reason is Reason.TITLE_MISSING
        assert excinfo.value.path == '/site/untitled.md'
        assert 'untitled.md' in str(excinfo.value)

    def test_missing_front_matter(self):
        with pytest.raises(DecodeError) as excinfo:
            parse_metadata("# Just markdown\n", 'plain.md')
        assert excinfo.value.reason is Reason.FRONT_MATTER_MISSING

    def test_missing_closing_delimiter(self):
        with pytest.raises(ItemError) as excinfo:
            parse_metadata("---\ntitle: Open\n", 'open.md')
        assert excinfo.value.reason is Reason.MARKDOWN_MISSING

    def test_malformed_yaml(self):
        with pytest.raises(DecodeError) as excinfo:
            parse_metadata("---\ntitle: [unclosed\n---\nbody\n", 'broken.md')

        assert excinfo.value.reason is Reason.FRONT_MATTER_INVALID
        assert isinstance(excinfo.value.__cause__, yaml.YAMLError)

    def test_front_matter_not_a_mapping(self):
        with pytest.raises(DecodeError) as excinfo:
            parse_metadata("---\n- just\n- a list\n---\nbody\n")
        assert excinfo.value.reason is Reason.FRONT_MATTER_INVALID

    def test_non_text_title(self):
        with pytest.raises(DecodeError) as excinfo:
            parse_metadata("---\ntitle: [1, 2]\n---\nbody\n")
        assert excinfo.value.reason is Reason.FRONT_MATTER_INVALID


class TestDerivePath:
    """Test cases for logical path derivation."""

    root = Path('/site')

    @pytest.mark.parametrize('name, expected, expected_date', [
        ('2023-05-01-hello.md', '2023/05/01/hello.html', date(2023, 5, 1)),
        ('1999-12-31-party-time.md', '1999/12/31/party-time.html', date(1999, 12, 31)),
        ('2024-02-29-leap.md', '2024/02/29/leap.html', date(2024, 2, 29)),
    ])
    def test_dated_names(self, name, expected, expected_date):
        logical_path, file_date = derive_path(self.root / name, self.root)

        assert logical_path == PurePosixPath(expected)
        assert file_date == expected_date

    def test_dated_name_in_subdirectory(self):
        logical_path, file_date = derive_path(self.root / 'blog' / '2023-05-01-hello.md', self.root)

        assert logical_path == PurePosixPath('blog/2023/05/01/hello.html')
        assert file_date == date(2023, 5, 1)

    @pytest.mark.parametrize('relative, expected', [
        ('about.md', 'about.html'),
        ('docs/guide/intro.md', 'docs/guide/intro.html'),
        ('notes.v2.md', 'notes.v2.html'),
        ('v2023-05-01-release.md', 'v2023-05-01-release.html'),
        ('2023-05-01.md', '2023-05-01.html'),
    ])
    def test_undated_names(self, relative, expected):
        logical_path, file_date = derive_path(self.root / relative, self.root)

        assert logical_path == PurePosixPath(expected)
        assert file_date is None

    def test_custom_extension(self):
        logical_path, _ = derive_path(self.root / 'about.md', self.root, '.htm')
        assert logical_path == PurePosixPath('about.htm')

    def test_invalid_calendar_date(self):
        with pytest.raises(PathError) as excinfo:
            derive_path(self.root / '2023-13-45-nope.md', self.root)
        assert excinfo.value.reason is Reason.INVALID_DATE

    def test_outside_root(self):
        with pytest.raises(PathError) as excinfo:
            derive_path(Path('/elsewhere/about.md'), self.root)

        assert excinfo.value.reason is Reason.OUTSIDE_ROOT
        assert excinfo.value.path == Path('/elsewhere/about.md')


class TestDefaults:
    """Test cases for per-directory default layouts."""

    def test_nearest_enclosing_directory_wins(self):
        root = Path('/site')
        table = DefaultsTable(root, {root: 'page', root / 'blog': 'post'})

        assert table.layout_for(root / 'blog' / '2023' / 'drafts') == 'post'
        assert table.layout_for(root / 'blog') == 'post'
        assert table.layout_for(root / 'docs') == 'page'
        assert table.layout_for(root) == 'page'

    def test_no_default(self):
        table = DefaultsTable(Path('/site'))
        assert table.layout_for(Path('/site/blog')) is None

    def test_lookup_stops_at_root(self):
        table = DefaultsTable(Path('/site/content'), {Path('/site'): 'outer'})
        assert table.layout_for(Path('/site/content/blog')) is None

    def test_build_from_defaults_file(self, temp_dir):
        write_file(temp_dir / 'blog' / 'defaults.yml', "layout: post\n")
        write_file(temp_dir / 'defaults.yml', "layout: page\n")

        table = build_defaults(temp_dir)

        assert table.get(temp_dir / 'blog') == 'post'
        assert table.get(temp_dir) == 'page'
        assert len(table) == 2

    def test_build_from_sibling_file(self, temp_dir):
        (temp_dir / 'notes').mkdir()
        write_file(temp_dir / 'notes.yml', "layout: note\n")

        table = build_defaults(temp_dir)

        assert table.get(temp_dir / 'notes') == 'note'

    def test_defaults_file_beats_sibling_file(self, temp_dir):
        write_file(temp_dir / 'notes' / 'defaults.yml', "layout: inner\n")
        write_file(temp_dir / 'notes.yml', "layout: sibling\n")

        assert build_defaults(temp_dir).get(temp_dir / 'notes') == 'inner'

    def test_hidden_directories_skipped(self, temp_dir):
        write_file(temp_dir / '.git' / 'defaults.yml', "layout: hidden\n")
        assert len(build_defaults(temp_dir)) == 0

    def test_defaults_without_layout(self, temp_dir):
        path = write_file(temp_dir / 'blog' / 'defaults.yml', "title: nope\n")

        with pytest.raises(DecodeError) as excinfo:
            build_defaults(temp_dir)

        assert excinfo.value.reason is Reason.DEFAULTS_INVALID
        assert Path(excinfo.value.path) == path

    def test_malformed_defaults(self, temp_dir):
        write_file(temp_dir / 'blog' / 'defaults.yml', "layout: [broken\n")

        with pytest.raises(DecodeError):
            build_defaults(temp_dir)

    def test_non_utf8_defaults_file(self, temp_dir):
        path = temp_dir / 'blog' / 'defaults.yml'
        path.parent.mkdir()
        path.write_bytes(b"layout: p\xff\xfeost\n")

        with pytest.raises(IOFailure) as excinfo:
            build_defaults(temp_dir)

        assert excinfo.value.reason is Reason.READ
        assert Path(excinfo.value.path) == path
