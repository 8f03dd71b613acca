# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Pole-zero load phase.

Like the AC load, but the legacy code receives the complex frequency ``s``
as a parameter and multiplies capacitances by its real and imaginary parts
separately. Once the two stamps are merged, ``new Complex(g + x * s->real,
x * s->imag)`` is simply ``g + x * cstate.Laplace``.
"""

import re

from cdevparser.code import extract_method_parameters, format_code, sub_code
from cdevparser.device import EntryPoint

from sp2cslib.dfl import ExportFlags
from sp2cslib.iterator import IterationSplit, member_access_to_dots
from sp2cslib.phases import register_phase
from sp2cslib.phases.circuit import merge_complex
from sp2cslib.phases.load import LoadPhase


def simplify_laplace(code: str, s: str) -> str:
    """Fold real/imaginary products with *s* into complex products."""
    sv = re.escape(s)
    real = rf"{sv}\s*->\s*real"
    imag = rf"{sv}\s*->\s*imag"
    factor = r"(?P<x>[\w.]+(?:\s*->\s*\w+)?)"

    # new Complex(a + x * s->real, x * s->imag) and new Complex(x * s->real, x * s->imag)
    code = sub_code(
        re.compile(
            rf"new\s+Complex\s*\(\s*(?P<a>[^,()]+?)\s*\+\s*{factor}\s*\*\s*{real}\s*,\s*(?P=x)\s*\*\s*{imag}\s*\)"
        ),
        r"(\g<a> + \g<x> * cstate.Laplace)",
        code,
    )
    code = sub_code(
        re.compile(rf"new\s+Complex\s*\(\s*{factor}\s*\*\s*{real}\s*,\s*(?P=x)\s*\*\s*{imag}\s*\)"),
        r"\g<x> * cstate.Laplace",
        code,
    )

    code = sub_code(re.compile(rf"(?<![\w.]){real}\b"), "cstate.Laplace.Real", code)
    code = sub_code(re.compile(rf"(?<![\w.]){imag}\b"), "cstate.Laplace.Imaginary", code)
    return code


@register_phase("pzload")
class PzLoadPhase(LoadPhase):
    """Translates the pole-zero load entry point."""

    phase = "pzload"
    entry_point = EntryPoint.PZ_LOAD
    flag = ExportFlags.PZLOAD
    matrix = "cstate.Matrix"

    def __init__(self, source, circuit="ckt", diagnostics=None, setup=None):
        # pzLoad(GENmodel *inModel, CKTcircuit *ckt, SPcomplex *s)
        content = source.get_entry_point(self.entry_point)
        params = extract_method_parameters(content, re.escape(source.entry_point_name(self.entry_point)))
        self.laplace = params[2] if len(params) > 2 else "s"
        self.matrix_nodes = dict(setup.matrix_nodes) if setup is not None else {}
        self.states_variable = setup.states_variable if setup is not None else None
        IterationSplit.__init__(self, content, circuit, diagnostics)

    def export_model(self, model_params):
        code = self.export_model_code(model_params)
        code = self.apply_circuit(code, self.model_variables_extra)
        code = simplify_laplace(code, self.laplace)
        return format_code(member_access_to_dots(code))

    def export_device(self, model_params, device_params):
        code = self.export_device_code(model_params, device_params)
        code = self.apply_circuit(code, self.device_variables_extra)
        code = merge_complex(code)
        code = simplify_laplace(code, self.laplace)
        return format_code(member_access_to_dots(code))
