# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Truncation error phase."""

import re

from cdevparser.code import extract_method_parameters, format_code, sub_code
from cdevparser.device import EntryPoint

from sp2cslib.dfl import ExportFlags
from sp2cslib.iterator import IterationSplit, member_access_to_dots
from sp2cslib.phases import register_phase


def rewrite_terr(code: str, states_variable: str | None, method: str = "method") -> str:
    """``CKTterr(X, ckt, ts)`` -> ``method.Terr(base + X, ckt, ref ts)``."""
    base = f"{states_variable} + " if states_variable else ""
    pattern = re.compile(r"\bCKTterr\s*\(\s*(?P<var>\w+)\s*,\s*(?P<ckt>\w+)\s*,\s*(?P<ts>\w+)\s*\)")
    return sub_code(pattern, lambda m: f"{method}.Terr({base}{m.group('var')}, {m.group('ckt')}, ref {m.group('ts')})", code)


@register_phase("trunc")
class TruncPhase(IterationSplit):
    """Translates the truncation error entry point."""

    phase = "trunc"
    entry_point = EntryPoint.TRUNC
    flag = ExportFlags.TRUNCATE

    def __init__(self, source, circuit="ckt", diagnostics=None, setup=None):
        content = source.get_entry_point(self.entry_point)

        # trunc(GENmodel *inModel, CKTcircuit *ckt, double *timeStep)
        params = extract_method_parameters(content, re.escape(source.entry_point_name(self.entry_point)))
        self.timestep = params[2] if len(params) > 2 else "timeStep"
        self.states_variable = setup.states_variable if setup is not None else None
        super().__init__(content, circuit, diagnostics)

    def export_model(self, model_params):
        code = self.export_model_code(model_params)
        return format_code(member_access_to_dots(code))

    def export_device(self, model_params, device_params):
        code = self.export_device_code(model_params, device_params)
        code = rewrite_terr(code, self.states_variable)
        return format_code(member_access_to_dots(code))
