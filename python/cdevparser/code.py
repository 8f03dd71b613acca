# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Delimiter, comment and string aware scanning of C source text.

Every structural extraction in the translator is built on a single
character-level state machine (:func:`scan`) that knows whether a position
is plain code, part of a string literal, or part of a line or block comment.
Brackets, quotes and comment starters only have an effect in plain code.

The module also holds the deterministic pretty-printer :func:`format_code`
that every translated method body passes through before it is emitted.
"""

import re
from enum import Enum
from typing import Callable, Iterator

from cdevparser.exc import UnbalancedDelimiterError


class Mode(Enum):
    """Scanner state for a single character."""

    NORMAL = "normal"
    STRING = "string"
    LINE_COMMENT = "line-comment"
    BLOCK_COMMENT = "block-comment"


CLOSING = {"(": ")", "[": "]", "{": "}"}

# Placeholders used by mask(), one per non-code mode
_MASK_CHAR = {
    Mode.STRING: "\x01",
    Mode.LINE_COMMENT: "\x02",
    Mode.BLOCK_COMMENT: "\x03",
}
_COMMENT_MASKS = "\x02\x03"


def scan(text: str, start: int = 0) -> Iterator[tuple[int, Mode]]:
    """Yield ``(index, mode)`` for every character from *start* on.

    Scanning always begins in :attr:`Mode.NORMAL`. Quote characters and
    comment starters/terminators are reported with the mode they belong to.
    Inside a string a backslash escapes the next character. The newline that
    terminates a line comment is reported as normal code.
    """
    n = len(text)
    mode = Mode.NORMAL
    i = start
    while i < n:
        c = text[i]
        if mode is Mode.NORMAL:
            if c == '"':
                mode = Mode.STRING
                yield i, mode
            elif c == "/" and i + 1 < n and text[i + 1] in "/*":
                mode = Mode.LINE_COMMENT if text[i + 1] == "/" else Mode.BLOCK_COMMENT
                yield i, mode
                yield i + 1, mode
                i += 2
                continue
            else:
                yield i, mode
        elif mode is Mode.STRING:
            yield i, mode
            if c == "\\" and i + 1 < n:
                yield i + 1, mode
                i += 2
                continue
            if c == '"':
                mode = Mode.NORMAL
        elif mode is Mode.LINE_COMMENT:
            if c in "\r\n":
                mode = Mode.NORMAL
            yield i, mode
        else:
            if c == "*" and i + 1 < n and text[i + 1] == "/":
                yield i, mode
                yield i + 1, mode
                mode = Mode.NORMAL
                i += 2
                continue
            yield i, mode
        i += 1


def mask(text: str) -> str:
    """Return *text* with every string and comment character replaced.

    The result has the same length as *text*, so match positions found in
    the masked text are valid in the original. Newlines are kept.
    """
    chars = list(text)
    for i, mode in scan(text):
        if mode is not Mode.NORMAL and chars[i] not in "\r\n":
            chars[i] = _MASK_CHAR[mode]
    return "".join(chars)


def sub_code(pattern: re.Pattern, repl: str | Callable[[re.Match], str], text: str) -> str:
    """Like ``pattern.sub(repl, text)`` but only matches plain code.

    The pattern is matched against the masked text, so it never sees the
    inside of a string or comment. *repl* may use group references or be
    a function of the match. Groups hold masked text, a function that keeps
    string literals must slice the original by the match positions.
    """
    masked = mask(text)
    pieces = []
    last = 0
    for m in pattern.finditer(masked):
        pieces.append(text[last:m.start()])
        pieces.append(repl(m) if callable(repl) else m.expand(repl))
        last = m.end()
    pieces.append(text[last:])
    return "".join(pieces)


def remove_comments(text: str) -> str:
    """Strip ``//`` line comments and ``/* */`` block comments."""
    return "".join(
        text[i]
        for i, mode in scan(text)
        if mode is not Mode.LINE_COMMENT and mode is not Mode.BLOCK_COMMENT
    )


def match_delimiter(text: str, index: int) -> int:
    """Return the index of the delimiter closing the one at *index*.

    The character at *index* must be ``(``, ``[`` or ``{``. Only brackets of
    the same kind are counted and only in plain code.

    Raises:
        UnbalancedDelimiterError: If the text ends first.
    """
    opening = text[index]
    closing = CLOSING.get(opening)
    if closing is None:
        raise ValueError(f"'{opening}' is not an opening delimiter")

    level = 0
    for i, mode in scan(text, index):
        if mode is not Mode.NORMAL:
            continue
        c = text[i]
        if c == opening:
            level += 1
        elif c == closing:
            level -= 1
            if level == 0:
                return i
    raise UnbalancedDelimiterError(opening, index)


def extract_block(text: str, index: int) -> str:
    """Return the text strictly between the delimiter at *index* and its match."""
    return text[index + 1:match_delimiter(text, index)]


def _skip_blank(masked: str, i: int, end: int) -> int:
    """Skip whitespace and comments."""
    while i < end and (masked[i].isspace() or masked[i] in _COMMENT_MASKS):
        i += 1
    return i


def _is_word_char(c: str) -> bool:
    return c.isalnum() or c == "_"


def _next_word(masked: str, i: int, end: int) -> tuple[int, int, str] | None:
    """Find the next identifier token in plain code.

    Returns ``(start, end, word)`` or None. Tokens starting with a digit
    (numeric literals) are skipped as a whole.
    """
    while i < end:
        c = masked[i]
        if _is_word_char(c):
            j = i
            while j < end and _is_word_char(masked[j]):
                j += 1
            if not c.isdigit():
                return i, j, masked[i:j]
            i = j
        else:
            i += 1
    return None


def _switch_body(text: str, masked: str, i: int, end: int) -> int | None:
    """Return the index of ``{`` of a switch whose keyword ends at *i*.

    Returns None if the keyword is not followed by ``( ... ) {``.
    """
    p = _skip_blank(masked, i, end)
    if p >= end or masked[p] != "(":
        return None
    q = _skip_blank(masked, match_delimiter(text, p) + 1, end)
    if q >= end or masked[q] != "{":
        return None
    return q


def extract_switch_cases(text: str, start_at: int = 0) -> dict[str, str]:
    """Extract the bodies of the first switch statement at or after *start_at*.

    Returns an ordered mapping from case label to its stripped body. A body
    ends at the next sibling ``case`` label; the last body ends at a trailing
    ``default:`` label or at the end of the switch block. Nested switch
    statements are skipped as a whole, so their labels never show up.

    Labels that fall through (``case A: case B: stmt;``) each get their own
    span, so ``A`` receives an empty body and ``B`` the shared statements.
    """
    masked = mask(text)
    n = len(text)

    # Find the switch header
    pos = start_at
    brace = None
    while brace is None:
        word = _next_word(masked, pos, n)
        if word is None:
            return {}
        _, pos, name = word
        if name == "switch":
            brace = _switch_body(text, masked, pos, n)
    block_end = match_delimiter(text, brace)

    # Collect sibling labels as (id, label start, body start), id is None for default
    labels = []
    pos = brace + 1
    while True:
        word = _next_word(masked, pos, block_end)
        if word is None:
            break
        start, pos, name = word
        if name == "switch":
            inner = _switch_body(text, masked, pos, block_end)
            if inner is not None:
                pos = match_delimiter(text, inner) + 1
        elif name == "case":
            p = _skip_blank(masked, pos, block_end)
            q = p
            while q < block_end and _is_word_char(masked[q]):
                q += 1
            colon = _skip_blank(masked, q, block_end)
            if q > p and colon < block_end and masked[colon] == ":":
                labels.append((text[p:q], start, colon + 1))
                pos = colon + 1
        elif name == "default":
            colon = _skip_blank(masked, pos, block_end)
            if colon < block_end and masked[colon] == ":":
                labels.append((None, start, colon + 1))
                pos = colon + 1

    cases = {}
    defaults = [start for label, start, _ in labels if label is None]
    case_labels = [lbl for lbl in labels if lbl[0] is not None]
    for k, (label, _, body_start) in enumerate(case_labels):
        if k + 1 < len(case_labels):
            body_end = case_labels[k + 1][1]
        else:
            trailing = [d for d in defaults if d >= body_start]
            body_end = trailing[-1] if trailing else block_end
        cases.setdefault(label, text[body_start:body_end].strip())
    return cases


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split *text* at *sep* characters that are not nested in brackets."""
    masked = mask(text)
    parts = []
    level = 0
    last = 0
    for i, c in enumerate(masked):
        if c in "([{":
            level += 1
        elif c in ")]}":
            level -= 1
        elif c == sep and level == 0:
            parts.append(text[last:i])
            last = i + 1
    parts.append(text[last:])
    return parts


_pat_identifier = re.compile(r"[A-Za-z_]\w*")


def extract_method_parameters(text: str, method: str = r"\w+") -> list[str]:
    """Return the parameter names of the first call or definition of *method*.

    *method* is a regular expression for the name. For each comma separated
    entry the last identifier is taken, so both ``f(a, b)`` and
    ``f(int a, double *b)`` yield ``["a", "b"]``. Returns an empty list if
    there is no match or the list is empty or ``void``.
    """
    m = re.search(rf"(?<!\w){method}\s*\(", mask(text))
    if m is None:
        return []

    params = []
    for part in split_top_level(extract_block(text, m.end() - 1)):
        names = _pat_identifier.findall(remove_comments(part))
        if names and names != ["void"]:
            params.append(names[-1])
    return params


# Pretty printer patterns, matched on masked text
_pat_open_brace = re.compile(r"\s*\{")
_pat_after_open_brace = re.compile(r"\{[ \t]*(?=\S)")
_pat_close_after_statement = re.compile(r";[ \t]*\}")
_pat_else = re.compile(r"\}\s*else\b")
_pat_blank_lines = re.compile(r"([ \t]*\n){3,}")
_pat_trailing_space = re.compile(r"[ \t]+(?=\n|$)")
_pat_if = re.compile(r"(?<![\w#])if\s*\(")
_pat_condition_break = re.compile(r"[ \t]*\n\s*")
_pat_assignment_start = re.compile(
    r"^\s*[A-Za-z_][\w.\[\]]*(?:\s*->\s*\w+)*\s*(?:[-+*/%&|^]|<<|>>)?=(?![=>])"
)
_pat_bare_assignment = re.compile(r"(?<![=!<>+\-*/%&|^])=(?![=>])")
_pat_exponent = re.compile(r"(?<![\w.])(?:\d+\.?\d*|\.\d+)[eE]$")
_pat_directive = re.compile(r"[ \t]*#")

# Operators that get a single space on each side, longest first
_SPACED_OPERATORS = (
    "<<=", ">>=",
    "==", "!=", "<=", ">=", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=",
    "&&", "||", "=>",
    "=", "+", "-",
)
# Operators that are copied as they are
_VERBATIM_OPERATORS = ("->", "++", "--", "<<", ">>")
_OPERATORS = sorted(_SPACED_OPERATORS + _VERBATIM_OPERATORS, key=len, reverse=True)
_UNARY_AFTER = "([{,=;:?!<>&|^~*/%+-"
_UNARY_KEYWORDS = ("return", "case")


def _join_wrapped_assignments(code: str) -> str:
    """Join an assignment statement wrapped over several lines into one line."""
    lines = code.split("\n")
    masked = mask(code).split("\n")
    out = []
    i = 0
    while i < len(lines):
        m = masked[i]
        if (
            _pat_assignment_start.match(m)
            and not any(c in m for c in ";{}#")
            and "\x02" not in m
        ):
            j = i + 1
            joined = None
            while j < len(masked):
                cont = masked[j]
                if (
                    not cont.strip()
                    or any(c in cont for c in "{}#\x02")
                    or _pat_bare_assignment.search(cont)
                ):
                    break
                if ";" in cont:
                    if cont.rstrip().endswith(";") and cont.count(";") == 1:
                        joined = j
                    break
                j += 1
            if joined is not None:
                parts = [lines[i].rstrip()] + [l.strip() for l in lines[i + 1:joined + 1]]
                out.append(" ".join(parts))
                i = joined + 1
                continue
        out.append(lines[i])
        i += 1
    return "\n".join(out)


def _is_unary(out: list[str]) -> bool:
    """Check if a ``+``/``-`` following the output so far is unary."""
    k = len(out) - 1
    while k >= 0 and out[k].isspace():
        k -= 1
    if k < 0:
        return True
    prev = out[k]
    if prev in _UNARY_AFTER:
        return True
    if _is_word_char(prev):
        j = k
        while j >= 0 and _is_word_char(out[j]):
            j -= 1
        return "".join(out[j + 1:k + 1]) in _UNARY_KEYWORDS
    return False


def _space_operators(code: str) -> str:
    """Put exactly one space around binary and assignment operators."""
    masked = mask(code)
    out = []
    n = len(code)
    i = 0
    line_start = True
    while i < n:
        c = masked[i]

        # Preprocessor lines are left alone
        if line_start and _pat_directive.match(masked, i):
            e = code.find("\n", i)
            e = n if e < 0 else e
            out.extend(code[i:e])
            i = e
            line_start = False
            continue
        line_start = c == "\n"

        op = None
        if c in "<>=!+-*/%&|^":
            op = next((o for o in _OPERATORS if masked.startswith(o, i)), None)
        if op is None or op in _VERBATIM_OPERATORS:
            op = op or c
            out.extend(code[i:i + len(op)])
            i += len(op)
            continue

        i += len(op)
        if op in "+-" and _pat_exponent.search("".join(out[-24:])):
            out.append(op)
            continue
        if op in "+-" and _is_unary(out):
            out.append(op)
            while i < n and masked[i] in " \t":
                i += 1
            continue

        while out and out[-1] in " \t":
            out.pop()
        if out and out[-1] != "\n":
            out.append(" ")
        out.extend(op)
        out.append(" ")
        while i < n and masked[i] in " \t":
            i += 1
    return "".join(out)


def _flatten_conditions(code: str) -> str:
    """Put every ``if ( ... )`` condition on a single line.

    Conditions are processed from the last one backwards, so a nested
    condition is already flat when the enclosing one is processed.
    """
    for m in reversed(list(_pat_if.finditer(mask(code)))):
        start = m.end() - 1
        end = match_delimiter(code, start)
        inner = code[start + 1:end]
        inner_masked = mask(inner)
        pieces = []
        last = 0
        for b in _pat_condition_break.finditer(inner_masked):
            # Keep the line break that terminates a line comment
            if b.start() > 0 and inner_masked[b.start() - 1] == "\x02":
                continue
            pieces.append(inner[last:b.start()])
            pieces.append(" ")
            last = b.end()
        pieces.append(inner[last:])
        code = code[:start + 1] + "".join(pieces) + code[end:]
    return code


def format_code(code: str) -> str:
    """Deterministically reformat a piece of translated code.

    * line endings become ``\\n``
    * every opening brace goes on its own line, ``} else {`` on three
    * runs of blank lines collapse to a single blank line
    * an assignment wrapped over several lines is joined into one line
    * binary and assignment operators get one space on each side
    * ``if`` conditions are flattened onto one line

    Applying the function to its own output changes nothing.
    """
    code = code.replace("\r\n", "\n").replace("\r", "\n")

    code = sub_code(_pat_open_brace, "\n{", code)
    code = sub_code(_pat_after_open_brace, "{\n", code)
    code = sub_code(_pat_close_after_statement, ";\n}", code)
    code = sub_code(_pat_else, "}\nelse", code)

    code = _join_wrapped_assignments(code)
    code = _space_operators(code)
    code = _flatten_conditions(code)

    code = sub_code(_pat_trailing_space, "", code)
    code = sub_code(_pat_blank_lines, "\n\n", code)
    return code.strip()
