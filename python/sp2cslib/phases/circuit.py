# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Rewrites of circuit accessors shared by the load-like phases.

The legacy code talks to the simulator through raw pointers: state vectors
``*(ckt->CKTstate0 + here->DIOvoltage)``, the solution and right hand side
vectors ``*(ckt->CKTrhsOld + node)``, matrix element pointers allocated in
setup ``*(here->DIOposPosPtr)`` and the analysis mode bit mask
``ckt->CKTmode & MODETRAN``. These are turned into indexed accesses and
boolean expressions on the target's state objects.
"""

import logging
import re

from cdevparser.code import mask, sub_code

logger = logging.getLogger("sp2cs.phases")


def rewrite_states(code: str, states_variable: str | None, circuit: str = "ckt", state: str = "state") -> str:
    """``*(ckt->CKTstateN + X)`` -> ``state.States[N][base + X]``."""
    pattern = re.compile(rf"\*\s*\(\s*{re.escape(circuit)}\s*->\s*CKTstate(?P<n>\d+)\s*\+\s*(?P<var>\w+)\s*\)")
    base = states_variable or "0"
    return sub_code(pattern, lambda m: f"{state}.States[{m.group('n')}][{base} + {m.group('var')}]", code)


def rewrite_solution(code: str, circuit: str = "ckt", rstate: str = "rstate") -> str:
    """Old solution and right hand side pointer arithmetic to indexing."""
    ckt = re.escape(circuit)
    code = sub_code(
        re.compile(rf"\*\s*\(\s*{ckt}\s*->\s*CKTrhsOld\s*\+\s*(?P<n>\w+)\s*\)"),
        rf"{rstate}.OldSolution[\g<n>]",
        code,
    )
    code = sub_code(
        re.compile(rf"\*\s*\(\s*{ckt}\s*->\s*CKTrhs\s*\+\s*(?P<n>\w+)\s*\)"),
        rf"{rstate}.Rhs[\g<n>]",
        code,
    )
    return code


def rewrite_matrix(
    code: str,
    matrix_nodes: dict[str, tuple[str, str]],
    extra: set[str],
    matrix: str = "rstate.Matrix",
) -> str:
    """Matrix element pointers to row/column indexed cells.

    ``*(P)`` becomes ``matrix[r, c]`` and ``*(P + 1)`` its imaginary part.
    Every pointer name consumed is removed from *extra*.
    """
    for name, (row, col) in matrix_nodes.items():
        extra.discard(name)
        n = re.escape(name)
        code = sub_code(re.compile(rf"\*\s*\(\s*{n}\s*\+\s*1\s*\)"), f"{matrix}[{row}, {col}].Imag", code)
        code = sub_code(re.compile(rf"\*\s*\(\s*{n}\s*\)"), f"{matrix}[{row}, {col}]", code)
    return code


def rewrite_circuit_scalars(code: str, circuit: str = "ckt", method: str = "method") -> str:
    """Time step and angular frequency."""
    ckt = re.escape(circuit)
    code = sub_code(re.compile(rf"\b{ckt}\s*->\s*CKTdelta\b"), f"{method}.Delta", code)
    code = sub_code(re.compile(rf"\b{ckt}\s*->\s*CKTomega\b"), "cstate.Laplace.Imaginary", code)
    return code


# Single flag tests, flag -> (test, negated test)
def _single_flags(state, method):
    return {
        "MODETRAN": (f"({method} != null)", f"({method} == null)"),
        "MODETRANOP": (
            f"({state}.Domain == CircuitState.DomainTypes.Time && {state}.UseDC)",
            f"(!({state}.Domain == CircuitState.DomainTypes.Time && {state}.UseDC))",
        ),
        "MODEINITTRAN": (
            f"({method} != null && {method}.SavedTime == 0.0)",
            f"(!({method} != null && {method}.SavedTime == 0.0))",
        ),
        "MODEDCOP": (f"({state}.UseDC)", f"(!{state}.UseDC)"),
        "MODEINITSMSIG": (f"({state}.UseSmallSignal)", f"(!{state}.UseSmallSignal)"),
        "MODEDCTRANCURVE": (
            f"({state}.Domain == CircuitState.DomainTypes.None)",
            f"({state}.Domain != CircuitState.DomainTypes.None)",
        ),
        "MODEUIC": (f"({state}.UseIC)", f"(!{state}.UseIC)"),
        "MODEAC": ("(true)", "(false)"),
        "MODEINITJCT": (
            f"({state}.Init == CircuitState.InitFlags.InitJct)",
            f"({state}.Init != CircuitState.InitFlags.InitJct)",
        ),
        "MODEINITFLOAT": (
            f"({state}.Init == CircuitState.InitFlags.InitFloat)",
            f"({state}.Init != CircuitState.InitFlags.InitFloat)",
        ),
        "MODEINITFIX": (
            f"({state}.Init == CircuitState.InitFlags.InitFix)",
            f"({state}.Init != CircuitState.InitFlags.InitFix)",
        ),
    }


# Terms of an OR-ed test
def _or_terms(state, method):
    return {
        "MODEUIC": f"{state}.UseIC",
        "MODETRAN": f"{method} != null",
        "MODETRANOP": f"({state}.Domain == CircuitState.DomainTypes.Time && {state}.UseDC)",
        "TIMEDOMAIN": f"{state}.Domain == CircuitState.DomainTypes.Time",
        "MODEINITTRAN": f"({method} != null && {method}.SavedTime == 0.0)",
        "MODEDCOP": f"{state}.UseDC",
        "MODEINITSMSIG": f"{state}.UseSmallSignal",
        "MODEDCTRANCURVE": f"{state}.Domain == CircuitState.DomainTypes.None",
        "MODEINITJCT": f"{state}.Init == CircuitState.InitFlags.InitJct",
        "MODEINITFLOAT": f"{state}.Init == CircuitState.InitFlags.InitFloat",
        "MODEINITFIX": f"{state}.Init == CircuitState.InitFlags.InitFix",
    }


def simplify_flags(flags: list[str]) -> list[str] | None:
    """Reduce a set of OR-ed mode flags to terms the target can test.

    Returns the remaining flag names in a stable order, or None when a flag
    has no equivalent.
    """
    result = list(dict.fromkeys(flags))

    def replace(name, expansion):
        if name in result:
            i = result.index(name)
            result[i:i + 1] = [f for f in expansion if f not in result]

    # MODEDC = MODEDCOP | MODETRANOP | MODEDCTRANCURVE
    replace("MODEDC", ["MODEDCOP", "MODETRANOP", "MODEDCTRANCURVE"])
    # INITF = all initialization modes
    replace("INITF", ["MODEINITFLOAT", "MODEINITJCT", "MODEINITFIX", "MODEINITSMSIG", "MODEINITTRAN"])

    # MODETRAN | MODETRANOP is the time domain
    if "MODETRAN" in result and "MODETRANOP" in result:
        result[result.index("MODETRAN")] = "TIMEDOMAIN"
        result.remove("MODETRANOP")
    # MODETRAN | MODEINITTRAN = MODEINITTRAN
    if "MODEINITTRAN" in result and "MODETRAN" in result:
        result.remove("MODETRAN")
    # MODEUIC takes priority over the transient operating point and transient
    if "MODEUIC" in result:
        result = [f for f in result if f not in ("MODETRANOP", "MODETRAN")]
    # Never relevant
    result = [f for f in result if f not in ("MODEAC", "MODEINITPRED")]

    known = _or_terms("state", "method")
    if any(f not in known for f in result):
        return None
    return result


def rewrite_mode_flags(code: str, circuit: str = "ckt", state: str = "state", method: str = "method") -> str:
    """Translate ``ckt->CKTmode & FLAG`` tests to boolean expressions."""
    ckt = re.escape(circuit)
    single = _single_flags(state, method)
    terms = _or_terms(state, method)

    def one(m):
        entry = single.get(m.group("flag"))
        if entry is None:
            return m.group(0)
        return entry[1] if m.group("not") else entry[0]

    code = sub_code(
        re.compile(rf"(?P<not>!\s*)?\(\s*{ckt}\s*->\s*CKTmode\s*&\s*(?P<flag>\w+)\s*\)"),
        one,
        code,
    )

    def many(m):
        flags = [f.strip() for f in m.group("flags").split("|")]
        simplified = simplify_flags(flags)
        if not simplified:
            return m.group(0)
        joined = " || ".join(terms[f] for f in simplified)
        return ("!(" if m.group("not") else "(") + joined + ")"

    code = sub_code(
        re.compile(rf"(?P<not>!\s*)?\(\s*{ckt}\s*->\s*CKTmode\s*&\s*\(\s*(?P<flags>\w+(?:\s*\|\s*\w+)*)\s*\)\s*\)"),
        many,
        code,
    )
    return code


_pat_cell_assignment = re.compile(
    r"(?P<matrix>\w+\.Matrix)\s*\[\s*(?P<r>\w+)\s*,\s*(?P<c>\w+)\s*\]"
    r"(?P<imag>\.Imag)?\s*(?P<op>[+-]=)\s*(?P<value>[^;]+);"
)


def _join_parts(parts: list[tuple[str, str]], op: str) -> str:
    text = ""
    for part_op, value in parts:
        value = value.strip()
        if part_op == op:
            text = f"{text} + {value}" if text else value
        else:
            if any(c in value for c in "+-"):
                value = f"({value})"
            text = f"{text} - {value}" if text else f"-{value}"
    return text


def merge_complex(code: str) -> str:
    """Merge real and imaginary increments of the same matrix cell.

    Increments are grouped per innermost brace block, so statements on
    different branches of a condition are never combined. The merged
    statement takes the place of the first increment of its group.
    """
    masked = mask(code)

    # Innermost enclosing block of every position
    block_of = [0] * (len(code) + 1)
    stack = [-1]
    for i, c in enumerate(masked):
        if c == "{":
            stack.append(i)
        block_of[i] = stack[-1]
        if c == "}" and len(stack) > 1:
            stack.pop()

    groups: dict[tuple, list[re.Match]] = {}
    for m in _pat_cell_assignment.finditer(masked):
        key = (block_of[m.start()], m.group("matrix"), m.group("r"), m.group("c"))
        groups.setdefault(key, []).append(m)

    edits = []
    for (_, matrix, r, c), matches in groups.items():
        if not any(m.group("imag") for m in matches):
            continue
        op = matches[0].group("op")
        real = [(m.group("op"), code[m.start("value"):m.end("value")]) for m in matches if not m.group("imag")]
        imag = [(m.group("op"), code[m.start("value"):m.end("value")]) for m in matches if m.group("imag")]
        rpart = _join_parts(real, op) or "0.0"
        ipart = _join_parts(imag, op)
        merged = f"{matrix}[{r}, {c}] {op} new Complex({rpart}, {ipart});"
        edits.append((matches[0].start(), matches[0].end(), merged))
        for m in matches[1:]:
            edits.append((m.start(), m.end(), ""))
        logger.debug("Merged %d increments of %s[%s, %s]", len(matches), matrix, r, c)

    for start, end, text in sorted(edits, reverse=True):
        code = code[:start] + text + code[end:]
    return code
