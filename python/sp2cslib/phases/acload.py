# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Small signal (AC) load phase.

The legacy code stamps the real and the imaginary part of an admittance in
two separate statements, ``*(P) += g;`` and ``*(P + 1) += x;``. The target
matrix is complex, so both statements are merged into one
``cstate.Matrix[r, c] += new Complex(g, x);``.
"""

from cdevparser.code import format_code
from cdevparser.device import EntryPoint

from sp2cslib.dfl import ExportFlags
from sp2cslib.phases import register_phase
from sp2cslib.phases.circuit import merge_complex
from sp2cslib.phases.load import LoadPhase
from sp2cslib.iterator import member_access_to_dots


@register_phase("acload")
class AcLoadPhase(LoadPhase):
    """Translates the AC load entry point."""

    phase = "acload"
    entry_point = EntryPoint.AC_LOAD
    flag = ExportFlags.ACLOAD
    matrix = "cstate.Matrix"

    def export_device(self, model_params, device_params):
        code = self.export_device_code(model_params, device_params)
        code = self.apply_circuit(code, self.device_variables_extra)
        code = merge_complex(code)
        return format_code(member_access_to_dots(code))
