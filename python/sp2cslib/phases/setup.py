# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Setup phase.

Besides translating the body, setup is where the device tells the simulator
what it needs: default parameter values, matrix element pointers (the
``TSTALLOC`` macro), internal nodes (``CKTmkVolt``) and the number of state
slots (``*states += N``). All of these are lifted out of the code into
tables the generator and later phases use.
"""

import logging
import re

from cdevparser.code import extract_method_parameters, format_code, sub_code
from cdevparser.device import EntryPoint

from sp2cslib.dfl import ExportFlags
from sp2cslib.iterator import IterationSplit, member_access_to_dots
from sp2cslib.phases import register_phase

logger = logging.getLogger("sp2cs.phases")

_pat_default = re.compile(
    r"if\s*\(\s*!\s*(?P<var>\w+)\.Given\s*\)\s*"
    r"(?:\{\s*(?P=var)\.Value\s*=\s*(?P<v1>[^;{}]+);\s*\}|(?P=var)\.Value\s*=\s*(?P<v2>[^;{}]+);)"
)
_pat_boolean = re.compile(r"^(true|false)$", re.IGNORECASE)
_pat_number = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_pat_string = re.compile(r'^"([^"\\]|\\.)*"$')
_pat_zero = re.compile(r"^[+-]?(0+(\.0*)?|\.0+)([eE][+-]?\d+)?$")
_pat_tstalloc = re.compile(r"\bTSTALLOC\s*\(\s*(?P<mat>\w+)\s*,\s*(?P<r>\w+)\s*,\s*(?P<c>\w+)\s*\)\s*;?")
_pat_mkvolt = re.compile(
    r"(?P<error>\w+)\s*=\s*CKTmkVolt\s*\(\s*\w+\s*,\s*&\s*(?P<tmp>\w+)(?P<args>[^;]*)\)\s*;\s*"
    r"if\s*\(\s*(?P=error)\s*\)\s*return\s*\(?\s*(?P=error)\s*\)?\s*;\s*"
    r"(?P<node>\w+)\s*=\s*(?P=tmp)\s*->\s*number\s*;"
)


def extract_defaults(code: str, defaults: dict[str, str]) -> str:
    """Lift ``if (!F.Given) F.Value = <literal>;`` statements out of *code*.

    Literal values are stored in *defaults* unless they equal the type's
    default (zero or false). Statements with non-literal values stay.
    """

    def replace(m):
        var = m.group("var")
        # Positions are shared with the masked text, strings are not
        g = "v1" if m.group("v1") is not None else "v2"
        value = code[m.start(g):m.end(g)].strip()
        if not (_pat_boolean.match(value) or _pat_number.match(value) or _pat_string.match(value)):
            return code[m.start():m.end()]
        if _pat_zero.match(value) or value.lower() == "false":
            return ""
        defaults.setdefault(var, value)
        return ""

    return sub_code(_pat_default, replace, code)


@register_phase("setup")
class SetupPhase(IterationSplit):
    """Translates the setup entry point.

    Attributes:
        model_defaults: Model field -> default value
        device_defaults: Device field -> default value
        matrix_nodes: Matrix pointer -> (row node, column node)
        nodes: Node index fields in order of first use
        created_nodes: Nodes created by the device itself
        states_variable: Field holding the instance's first state slot
        states_count: Number of state slots, as written in the source
    """

    phase = "setup"
    entry_point = EntryPoint.SETUP
    flag = ExportFlags.SETUP

    def __init__(self, source, circuit="ckt", diagnostics=None, setup=None):
        content = source.get_entry_point(self.entry_point)

        # setup(SMPmatrix *matrix, GENmodel *inModel, CKTcircuit *ckt, int *states)
        params = extract_method_parameters(content, re.escape(source.entry_point_name(self.entry_point)))
        self.states = params[3] if len(params) > 3 else "states"

        self.model_defaults: dict[str, str] = {}
        self.device_defaults: dict[str, str] = {}
        self.matrix_nodes: dict[str, tuple[str, str]] = {}
        self.nodes: dict[str, None] = {}
        self.created_nodes: set[str] = set()
        self.states_variable: str | None = None
        self.states_count: str | None = None

        super().__init__(content, circuit, diagnostics)

    @property
    def external_nodes(self) -> list[str]:
        """Nodes bound to the device's pins, in order."""
        return [n for n in self.nodes if n not in self.created_nodes]

    def export_model(self, model_params):
        code = self.export_model_code(model_params)
        code = extract_defaults(code, self.model_defaults)
        return format_code(member_access_to_dots(code))

    def export_device(self, model_params, device_params):
        code = self.export_device_code(model_params, device_params)
        code = extract_defaults(code, self.device_defaults)
        code = self.extract_nodes(code)
        code = self.extract_states(code)
        return format_code(member_access_to_dots(code))

    def extract_nodes(self, code: str) -> str:
        """Record matrix pointers and nodes, translate node creation."""

        def tstalloc(m):
            r, c = m.group("r"), m.group("c")
            self.nodes.setdefault(r)
            self.nodes.setdefault(c)
            self.matrix_nodes[m.group("mat")] = (r, c)
            return ""

        code = sub_code(_pat_tstalloc, tstalloc, code)

        errors = set()
        consumed = set()

        def mkvolt(m):
            node = m.group("node")
            self.created_nodes.add(node)
            errors.add(m.group("error"))
            consumed.update(re.findall(r"(?<![\w.])[A-Za-z_]\w*", m.group("args")))
            return f"{node} = CreateNode({self.circuit}).Index;"

        code = sub_code(_pat_mkvolt, mkvolt, code)

        # Error codes of node creation are gone with it
        for name in errors:
            if not re.search(rf"(?<![\w.]){re.escape(name)}(?!\w)", code):
                self.device_variables.pop(name, None)
        # So are the fields only passed to it, such as the instance name
        for name in consumed:
            if not re.search(rf"(?<![\w.]){re.escape(name)}(?!\w)", code):
                self.device_variables_extra.discard(name)
        logger.debug("setup: %d matrix elements, nodes %s", len(self.matrix_nodes), ", ".join(self.nodes))
        return code

    def extract_states(self, code: str) -> str:
        """Find ``var = *states; *states += count;`` and remove it."""
        st = re.escape(self.states)
        pattern = re.compile(
            rf"(?<![\w.])(?P<var>\w+)\s*=\s*\*\s*{st}\s*;\s*\*\s*{st}\s*\+=\s*(?P<count>\w+)\s*;"
        )

        def replace(m):
            self.states_variable = m.group("var")
            self.states_count = m.group("count")
            return ""

        code = sub_code(pattern, replace, code)
        if self.states_variable is not None:
            self.device_variables_extra.discard(self.states_variable)
        return code
