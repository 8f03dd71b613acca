# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Conditional compilation resolution.

Device sources are full of ``#ifdef``/``#ifndef`` blocks selecting optional
features. Before any structural parsing these are resolved against a set of
defined symbols: the selected branch is kept and the other one discarded.
``#define`` and ``#include`` lines are dropped, macros are never expanded.

Resolution is a single stack-driven walk over the preprocessor directives
found in plain code (directives inside comments or strings are ignored).
Plain ``#if`` blocks whose condition is not a simple ``defined`` test are
left in the text untouched, but any ``#ifdef`` nested inside them is still
resolved.
"""

import re
from dataclasses import dataclass
from typing import Iterable

from cdevparser.code import mask
from cdevparser.exc import SourceError

# A directive keyword, matched on masked text
_pat_directive = re.compile(r"#[ \t]*(?P<dir>ifdef|ifndef|if|elif|else|endif|define|include)\b")
_pat_name = re.compile(r"\s*(?P<name>\w+)\s*")
_pat_following_space = re.compile(r"\s*")
_pat_line_rest = re.compile(r"(?:[^\n\\]|\\.|\\\n)*\n?", re.DOTALL)
_pat_defined = re.compile(r"^(?P<not>!\s*)?defined\s*(?:\(\s*(?P<a>\w+)\s*\)|(?P<b>\w+))$")


@dataclass
class _Frame:
    """One open conditional block.

    Attributes:
        opaque: Condition could not be decided, block is kept verbatim
        emitting: Current branch is selected
        done: Some branch of the block has already been selected
    """

    opaque: bool
    emitting: bool = True
    done: bool = True


def evaluate_condition(expr: str, defined: set[str]) -> bool | None:
    """Evaluate a simple ``#if``/``#elif`` condition.

    Understands ``0``, ``1``, ``defined NAME``, ``defined(NAME)`` and their
    negation with ``!``. Returns None for anything else.
    """
    expr = expr.strip()
    if expr in ("0", "1"):
        return expr == "1"
    m = _pat_defined.match(expr)
    if m is None:
        return None
    result = (m.group("a") or m.group("b")) in defined
    return not result if m.group("not") else result


def _resolve_pass(code: str, defined: set[str], elide: bool) -> str:
    masked = mask(code)
    stack: list[_Frame] = []
    out = []
    pos = 0

    def active():
        return all(f.opaque or f.emitting for f in stack)

    for m in _pat_directive.finditer(masked):
        if m.start() < pos:
            # Inside the continuation of an elided #define
            continue
        if active():
            out.append(code[pos:m.start()])
        directive = m.group("dir")
        end = m.end()

        if directive in ("ifdef", "ifndef"):
            nm = _pat_name.match(code, end)
            if nm is None:
                raise SourceError(f"Missing symbol after #{directive}")
            taken = (nm.group("name") in defined) != (directive == "ifndef")
            stack.append(_Frame(opaque=False, emitting=taken, done=taken))
            pos = nm.end()

        elif directive == "if":
            rest = _pat_line_rest.match(code, end)
            value = evaluate_condition(rest.group(0).rstrip("\n"), defined)
            if value is None:
                if active():
                    out.append(code[m.start():rest.end()])
                stack.append(_Frame(opaque=True))
            else:
                stack.append(_Frame(opaque=False, emitting=value, done=value))
            pos = rest.end()

        elif directive in ("elif", "else"):
            if not stack:
                raise SourceError(f"#{directive} without matching #if")
            frame = stack[-1]
            if directive == "elif":
                rest = _pat_line_rest.match(code, end)
                end = rest.end()
            else:
                end = _pat_following_space.match(code, end).end()
            if frame.opaque:
                if active():
                    out.append(code[m.start():end])
            elif directive == "elif":
                value = evaluate_condition(rest.group(0).rstrip("\n"), defined)
                frame.emitting = not frame.done and bool(value)
                frame.done = frame.done or frame.emitting
            else:
                frame.emitting = not frame.done
                frame.done = True
            pos = end

        elif directive == "endif":
            if not stack:
                raise SourceError("#endif without matching #if")
            frame = stack.pop()
            if frame.opaque and active():
                out.append(code[m.start():end])
            pos = end

        else:
            # #define and #include run to the end of the (continued) line
            rest = _pat_line_rest.match(code, end)
            if not elide and active():
                out.append(code[m.start():rest.end()])
            pos = rest.end()

    if stack:
        raise SourceError("Unterminated conditional block")
    out.append(code[pos:])
    return "".join(out)


def resolve_conditionals(code: str, defined: Iterable[str], elide: bool = True) -> str:
    """Resolve ``#ifdef``/``#ifndef``/``#else``/``#endif`` blocks in *code*.

    The branch selected by membership of the symbol in *defined* is kept.
    With *elide* set, ``#define`` and ``#include`` lines are removed. The
    resolution is repeated until the text no longer changes.
    """
    defined = set(defined)
    while True:
        resolved = _resolve_pass(code, defined, elide)
        if resolved == code:
            return resolved
        code = resolved
