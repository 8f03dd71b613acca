# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Tests for the C# code writer."""

from io import StringIO

from cswriter import CodeWriter, write_code


def _write(text, **kwargs):
    kwargs.setdefault("indent", "    ")
    writer = CodeWriter(**kwargs)
    writer.write(text)
    return writer.getvalue()


class TestIndentation:
    """Tests for brace-depth indentation."""

    def test_nested(self):
        """Each brace level adds one indent and stray whitespace is dropped."""
        text = "namespace X\n{\n  class A\n  {\n\n int a;\n\n }\n}"
        assert _write(text) == "namespace X\n{\n    class A\n    {\n        int a;\n    }\n}\n"

    def test_else(self):
        """A line closing and opening a block stays at the outer level."""
        text = "if (a)\n{\nx;\n} else {\ny;\n}"
        assert _write(text).split("\n")[:6] == ["if (a)", "{", "    x;", "} else {", "    y;", "}"]

    def test_braces_in_strings(self):
        """Braces inside string literals do not indent."""
        assert _write('s = "{";\nx;') == 's = "{";\nx;\n'

    def test_braces_in_comments(self):
        """Braces inside comments do not indent."""
        assert _write("// {\nx;") == "// {\nx;\n"

    def test_blank_lines(self):
        """Blank lines are kept between statements only."""
        assert _write("a;\n\nb;\n\n\n") == "a;\n\nb;\n"

    def test_tab_indent(self):
        """The indent unit is configurable."""
        assert _write("{\nx;\n}", indent="\t") == "{\n\tx;\n}\n"

    def test_unbalanced_close(self):
        """A stray closing brace never goes below column zero."""
        assert _write("}\nx;") == "}\nx;\n"


class TestWrapping:
    """Tests for wrapping long lines."""

    def test_operator(self):
        """Long lines break before an operator."""
        text = _write("x = alpha + beta + gamma + delta;", columns=30, indent="  ")
        assert text == "x = alpha + beta + gamma\n  + delta;\n"

    def test_comma(self):
        """Long argument lists break after a comma."""
        text = _write("f(aaaa, bbbb, cccc, dddd);", columns=20, indent="  ")
        assert text == "f(aaaa, bbbb, cccc,\n  dddd);\n"

    def test_continuation_indent(self):
        """Continuation lines are indented one level deeper."""
        text = _write("{\nx = alpha + beta + gamma + delta;\n}", columns=30, indent="  ")
        assert text.split("\n")[1:3] == ["  x = alpha + beta + gamma", "    + delta;"]

    def test_short_line(self):
        """Lines within the limit are kept."""
        assert _write("x = a + b;", columns=20) == "x = a + b;\n"

    def test_unbreakable(self):
        """A line without break points is written as is."""
        assert _write("abcdefghijklmnop;", columns=10) == "abcdefghijklmnop;\n"

    def test_string_not_broken(self):
        """String literals are never split."""
        text = 's = "a, b, c, d, e";'
        assert _write(text, columns=10) == text + "\n"


class TestWriteCode:
    """Tests for writing blocks to a file or a stream."""

    BLOCKS = ["class A", "{", "int a;", "}"]

    def test_stream(self):
        """Writing to a stream returns the written text."""
        stream = StringIO()
        content = write_code(self.BLOCKS, stream, indent="  ")
        assert content == "class A\n{\n  int a;\n}\n"
        assert stream.getvalue() == content

    def test_path(self, tmp_path):
        """Writing to a path creates the file, tab indented by default."""
        path = tmp_path / "A.cs"
        content = write_code(self.BLOCKS, path)
        assert path.read_text() == content == "class A\n{\n\tint a;\n}\n"

    def test_path_string(self, tmp_path):
        """A path may be given as a string."""
        path = tmp_path / "A.cs"
        write_code(["x;"], str(path))
        assert path.read_text() == "x;\n"
