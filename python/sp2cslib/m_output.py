# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import re
from io import StringIO

from cswriter.writer import write_code

from .dfl import ExportFlags

# Phase -> (method name, parameters, export flag)
PHASE_METHODS = {
    "setup": ("Setup", "Circuit ckt", ExportFlags.SETUP),
    "temperature": ("Temperature", "Circuit ckt", ExportFlags.TEMPERATURE),
    "load": ("Load", "Circuit ckt", ExportFlags.LOAD),
    "acload": ("AcLoad", "Circuit ckt", ExportFlags.ACLOAD),
    "pzload": ("AcLoad", "Circuit ckt", ExportFlags.PZLOAD),
    "trunc": ("Truncate", "Circuit ckt, ref double {timestep}", ExportFlags.TRUNCATE),
}

# Local shortcuts, declared only when the translated code uses them
_SHORTCUTS = [
    ("state", "var state = ckt.State;"),
    ("rstate", "var rstate = state.Real;"),
    ("cstate", "var cstate = state.Complex;"),
    ("method", "var method = ckt.Method;"),
]


def _uses(code, name):
    return re.search(rf"(?<![\w.]){re.escape(name)}\s*\.", code) is not None


def shortcuts(code):
    """Declarations of the state and method shortcuts *code* refers to."""
    used = {name for name, _ in _SHORTCUTS if _uses(code, name)}
    if used & {"rstate", "cstate"}:
        used.add("state")
    return [decl for name, decl in _SHORTCUTS if name in used]


def locals_block(variables, code):
    """Declarations of local variables not already declared in *code*."""
    lines = []
    for name, type_name in variables.items():
        declared = re.search(
            rf"^\s*(?:double|float|int|long)\b[^;=]*(?<!\w){re.escape(name)}(?!\w)",
            code, re.MULTILINE,
        )
        if declared is None:
            lines.append(f"{type_name} {name};")
    return lines


class OutputMixin:
    def exported(self, phase):
        return bool(PHASE_METHODS[phase][2] & self.cfg.get("export", ExportFlags.ALL))

    def header(self):
        lines = [f"using {u};" for u in self.cfg.get("usings", [])]
        lines += ["", f"namespace {self.cfg.get('namespace', 'SpiceSharp.Components')}", "{"]
        return lines

    def method(self, phase, preamble, variables, code):
        """Lines of one phase method."""
        name, args, _ = PHASE_METHODS[phase]
        if phase == "trunc":
            args = args.format(timestep=self.phases[phase].timestep)
        body = preamble + shortcuts(code) + locals_block(variables, code)
        lines = ["", f"public override void {name}({args})", "{"]
        lines += body
        if code.strip():
            if body:
                lines.append("")
            lines.append(code)
        lines.append("}")
        return lines

    def model_blocks(self):
        """
        Returns the model class as a list of code blocks.
        """
        name = self.name + "Model"
        params = self.model_params

        out = self.header()
        out += [
            "/// <summary>",
            f"/// Model for a {self.source.description or self.name}",
            "/// </summary>",
            f"public class {name} : CircuitModel",
            "{",
        ]

        for decl in list(params.declarations.values()) + params.methods:
            out += [decl, ""]

        if self.shared_variables:
            out.append("// Computed by the model, used by devices")
            for var, type_name in self.shared_variables.items():
                out.append(f"public {type_name} {var} {{ get; private set; }}")
            out.append("")
        if self.model_extra:
            out.append("// Not a parameter")
            for var in sorted(self.model_extra):
                out.append(f"public double {var} {{ get; set; }}")
            out.append("")

        out += [
            "/// <summary>",
            "/// Constructor",
            "/// </summary>",
            "/// <param name=\"name\">Name of the model</param>",
            f"public {name}(string name) : base(name)",
            "{",
            "}",
        ]

        for phase, code in self.model_code.items():
            if not self.exported(phase):
                continue
            variables = self.phases[phase].model_variables
            if not code.strip() and not variables:
                continue
            out += self.method(phase, [], variables, code)

        out += ["}", "}"]
        return out

    def device_blocks(self):
        """
        Returns the device class as a list of code blocks.
        """
        model = self.name + "Model"
        params = self.device_params
        setup = self.setup
        external = setup.external_nodes if setup is not None else []

        out = self.header()
        out += [
            "/// <summary>",
            f"/// {self.source.description or self.name}",
            "/// </summary>",
            f"public class {self.name} : CircuitComponent",
            "{",
            "/// <summary>",
            "/// The model of the device",
            "/// </summary>",
            f"public {model} Model {{ get; set; }}",
            "",
        ]

        for decl in list(params.declarations.values()) + params.methods:
            out += [decl, ""]

        if self.device_extra:
            out.append("// Not a parameter")
            for var in sorted(self.device_extra):
                out.append(f"private double {var};")
            out.append("")

        nodes = self.nodes
        if nodes:
            out.append("// Nodes")
            for node in nodes:
                out.append(f"public int {node} {{ get; private set; }}")
            out.append("")
        if setup is not None and setup.states_variable:
            out += ["// States", f"private int {setup.states_variable};"]
            for state, offset in self.states.items():
                out.append(f"private const int {state} = {offset};")
            out.append("")

        out += [
            "/// <summary>",
            "/// Constructor",
            "/// </summary>",
            "/// <param name=\"name\">Name of the device</param>",
            f"public {self.name}(string name) : base(name, {len(external)})",
            "{",
            "}",
            "",
            "/// <summary>",
            "/// Get the model of the device",
            "/// </summary>",
            "public override CircuitModel GetModel() => Model;",
        ]

        for phase, code in self.device_code.items():
            if not self.exported(phase):
                continue
            preamble = self.setup_preamble() if phase == "setup" else []
            out += self.method(phase, preamble, self.phases[phase].device_variables, code)

        out += ["}", "}"]
        return out

    def setup_preamble(self):
        """Binding of the pins and allocation of the state slots."""
        setup = self.setup
        lines = []
        external = setup.external_nodes
        if external:
            lines.append("var nodes = BindNodes(ckt);")
            for i, node in enumerate(external):
                lines.append(f"{node} = nodes[{i}].Index;")
        count = self.states_count()
        if setup.states_variable and count is not None:
            lines.append(f"{setup.states_variable} = ckt.State.GetState({count});")
        return lines

    def export_model(self, output=None):
        """
        Writes the model class to a file path or text stream and returns it.
        """
        return self._write(self.model_blocks(), output)

    def export_device(self, output=None):
        """
        Writes the device class to a file path or text stream and returns it.
        """
        return self._write(self.device_blocks(), output)

    def _write(self, blocks, output):
        columns = self.cfg.get("columns", 120)
        indent = self.cfg.get("indent", "\t")
        if output is None:
            output = StringIO()
        return write_code(blocks, output, columns=columns, indent=indent)
