# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Load phase: the DC and transient matrix stamps."""

from cdevparser.code import format_code
from cdevparser.device import EntryPoint

from sp2cslib.dfl import ExportFlags
from sp2cslib.iterator import IterationSplit, member_access_to_dots
from sp2cslib.phases import register_phase
from sp2cslib.phases.circuit import (
    rewrite_circuit_scalars,
    rewrite_matrix,
    rewrite_mode_flags,
    rewrite_solution,
    rewrite_states,
)


@register_phase("load")
class LoadPhase(IterationSplit):
    """Translates the load entry point.

    Needs the setup phase for the matrix element table and the state base.
    """

    phase = "load"
    entry_point = EntryPoint.LOAD
    flag = ExportFlags.LOAD

    # Target expression of the matrix
    matrix = "rstate.Matrix"

    def __init__(self, source, circuit="ckt", diagnostics=None, setup=None):
        self.matrix_nodes = dict(setup.matrix_nodes) if setup is not None else {}
        self.states_variable = setup.states_variable if setup is not None else None
        super().__init__(source.get_entry_point(self.entry_point), circuit, diagnostics)

    def apply_circuit(self, code: str, extra: set[str]) -> str:
        code = rewrite_states(code, self.states_variable, self.circuit)
        code = rewrite_solution(code, self.circuit)
        code = rewrite_matrix(code, self.matrix_nodes, extra, self.matrix)
        code = rewrite_circuit_scalars(code, self.circuit)
        code = rewrite_mode_flags(code, self.circuit)
        return code

    def export_model(self, model_params):
        code = self.export_model_code(model_params)
        code = self.apply_circuit(code, self.model_variables_extra)
        return format_code(member_access_to_dots(code))

    def export_device(self, model_params, device_params):
        code = self.export_device_code(model_params, device_params)
        code = self.apply_circuit(code, self.device_variables_extra)
        return format_code(member_access_to_dots(code))
