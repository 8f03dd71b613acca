# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from cdevparser.code import format_code
from cdevparser.device import EntryPoint

from sp2cslib.dfl import ExportFlags
from sp2cslib.iterator import IterationSplit, member_access_to_dots
from sp2cslib.phases import register_phase


@register_phase("temperature")
class TemperaturePhase(IterationSplit):
    """Temperature dependent calculations, translated idiom by idiom."""

    phase = "temperature"
    entry_point = EntryPoint.TEMPERATURE
    flag = ExportFlags.TEMPERATURE

    def __init__(self, source, circuit="ckt", diagnostics=None, setup=None):
        super().__init__(source.get_entry_point(self.entry_point), circuit, diagnostics)

    def export_model(self, model_params):
        code = self.export_model_code(model_params)
        return format_code(member_access_to_dots(code))

    def export_device(self, model_params, device_params):
        code = self.export_device_code(model_params, device_params)
        return format_code(member_access_to_dots(code))
