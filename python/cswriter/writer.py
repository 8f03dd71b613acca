# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Indentation-tracking C# writer."""

import re
from pathlib import Path
from typing import Iterable, TextIO

from cdevparser.code import mask


# Where a long line may be broken: after a comma, or before a binary operator
_pat_comma = re.compile(r",[ \t]*")
_pat_operator = re.compile(r"[ \t]+(?=(?:&&|\|\||==|!=|<=|>=|\+|-|\*|/|\?|:|<|>)[ \t])")


def write_code(
    blocks: Iterable[str],
    output: str | Path | TextIO,
    columns: int = 120,
    indent: str = "\t",
) -> str:
    """Write blocks of code to a file or stream.

    Args:
        blocks: Pieces of code, possibly spanning several lines each
        output: Output file path or file object
        columns: Lines this long or longer are wrapped
        indent: One level of indentation

    Returns the written text.
    """
    writer = CodeWriter(columns=columns, indent=indent)
    for block in blocks:
        writer.write(block)
    content = writer.getvalue()

    if isinstance(output, (str, Path)):
        Path(output).write_text(content)
    else:
        output.write(content)
    return content


class CodeWriter:
    """Accumulates re-indented lines of code.

    Every physical line is stripped of its own indentation and indented by
    the number of braces open before it. A line starting with ``}`` closes
    its block before being indented.
    """

    def __init__(self, columns: int = 120, indent: str = "\t", tab_width: int = 4):
        self.columns = columns
        self.indent = indent
        self.tab_width = tab_width
        self.depth = 0
        self.lines: list[str] = []

    def write(self, block: str) -> None:
        """Append a block of code, one or more lines."""
        for line in block.replace("\r\n", "\n").split("\n"):
            self.write_line(line)

    def write_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            # No blank line right after an opening or before a closing brace
            if self.lines and self.lines[-1].strip() not in ("", "{"):
                self.lines.append("")
            return

        masked = mask(line)
        leading = len(masked) - len(masked.lstrip("}"))
        if leading and self.lines and self.lines[-1] == "":
            self.lines.pop()

        level = max(self.depth - leading, 0)
        self.lines.extend(self.wrap(line, level))
        self.depth = max(self.depth + masked.count("{") - masked.count("}"), 0)

    def width(self, text: str) -> int:
        return len(text.expandtabs(self.tab_width))

    def wrap(self, line: str, level: int) -> list[str]:
        """Split *line* into physical lines shorter than the column limit.

        The remainder is repeatedly broken at the rightmost comma or operator
        boundary that still fits. Continuation lines get one extra level of
        indentation. A remainder without a fitting boundary is kept whole.
        """
        prefix = self.indent * level
        result = []
        while self.width(prefix + line) >= self.columns:
            cut = self._break_point(line, prefix)
            if cut is None:
                break
            head, line = cut
            result.append(prefix + head)
            prefix = self.indent * (level + 1)
        result.append(prefix + line)
        return result

    def _break_point(self, line: str, prefix: str) -> tuple[str, str] | None:
        masked = mask(line)
        candidates = []
        for m in _pat_comma.finditer(masked):
            candidates.append((m.start() + 1, m.end()))
        for m in _pat_operator.finditer(masked):
            candidates.append((m.start(), m.end()))

        best = None
        for head_end, tail_start in candidates:
            head = line[:head_end].rstrip()
            tail = line[tail_start:]
            if not head or not tail.strip():
                continue
            if self.width(prefix + head) >= self.columns:
                continue
            if best is None or head_end > best[0]:
                best = (head_end, head, tail)
        if best is None:
            return None
        return best[1], best[2]

    def getvalue(self) -> str:
        lines = list(self.lines)
        while lines and lines[-1] == "":
            lines.pop()
        return "\n".join(lines) + "\n"
