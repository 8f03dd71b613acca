# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""SPICE3 device model to SpiceSharp class generator.

This module provides the ClassGenerator class. It reads one device folder,
runs the phase translators in a fixed order and collects everything the two
generated classes (model and device) need.
"""

import logging
import re
from pathlib import Path

from cdevparser.catalog import extract_catalog
from cdevparser.definitions import extract_constant, extract_states
from cdevparser.device import DeviceSource, EntryPoint
from cdevparser.exc import DeviceInfoError

from . import dfl
from .accessors import ParameterSet
from .diagnostics import Diagnostics, EXTRA_VARIABLE
from .exc import SharedVariableConflictError
from .m_output import OutputMixin
from .phases import get_phase

logger = logging.getLogger("sp2cs.generator")


class ClassGenerator(OutputMixin):
    """Translator of one SPICE3 device folder.

    Args:
        cfg: Configuration dictionary (see :func:`sp2cslib.dfl.default_config`)
        diagnostics: Collector for non-fatal problems, a new one if omitted

    Configuration dictionary keys:
        folder: Device source folder
        itf: Interface-table file name, found by its ``itf.h`` suffix if None
        defs: Definitions header name, found by its ``defs.h`` suffix if None
        defined: Symbols considered defined by the preprocessor
        entry_points: Positional order of the info structure's method list
        info_fields: Positions of name, description and parameter tables
        export: ExportFlags selecting the generated methods
        ac_source: "acload" or "pzload", source of the AcLoad method
        circuit: Name of the circuit pointer in the legacy source
        columns: Max columns per line
        indent: One level of indentation
        namespace: Namespace of the generated classes
        usings: Namespaces imported by the generated files

    Data (populated on construction):
        phases: Phase name -> phase translator, in order of execution
        model_code: Phase name -> translated model code
        device_code: Phase name -> translated device code
        shared_variables: Model locals read by device code, name -> type
        model_extra: Model fields not covered by the parameter catalog
        device_extra: Device fields not covered by the parameter catalog
        states: State slot name -> offset
    """

    def __init__(self, cfg=None, diagnostics=None):
        # If no config is given, use default config
        if cfg is None:
            cfg = dfl.default_config()
        self.cfg = cfg
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

        folder = Path(cfg.get("folder", "."))
        self.source = DeviceSource(
            folder,
            cfg.get("itf") or _find_file(folder, "itf.h"),
            cfg.get("defs") or _find_file(folder, "defs.h", required=False),
            cfg.get("defined", []),
            cfg.get("entry_points", dfl.SPICE3_ENTRY_POINTS),
            cfg.get("info_fields"),
        )
        self.circuit = cfg.get("circuit", "ckt")

        self.catalog = extract_catalog(self.source)
        self.model_params = ParameterSet.from_source(
            self.source, self.catalog.model,
            EntryPoint.MODEL_PARAM, EntryPoint.MODEL_ASK, self.diagnostics,
        )
        self.device_params = ParameterSet.from_source(
            self.source, self.catalog.device,
            EntryPoint.PARAM, EntryPoint.ASK, self.diagnostics,
        )

        self.phases = {}
        self.model_code = {}
        self.device_code = {}
        self.shared_variables: dict[str, str] = {}
        self.model_extra: set[str] = set()
        self.device_extra: set[str] = set()
        self.states: dict[str, int] = {}

        self.generate()

    @property
    def name(self) -> str:
        """Class name of the device, the model class adds a ``Model`` suffix."""
        return re.sub(r"\W", "", self.source.name) or "Device"

    @property
    def prefix(self) -> str:
        """Common prefix of all parameter IDs, e.g. ``DIO`` for ``DIO_AREA``."""
        ids = list(self.catalog.device) + list(self.catalog.model)
        heads = {pid.split("_", 1)[0] for pid in ids if "_" in pid}
        if len(heads) == 1 and all("_" in pid for pid in ids):
            return heads.pop()
        return ""

    @property
    def setup(self):
        return self.phases.get("setup")

    def phase_order(self) -> list[str]:
        """Names of the phases to run, in order.

        The AC method comes from the AC load or from the pole-zero load,
        whichever is configured, falling back to the one that exists.
        """
        has = self.source.has_entry_point
        ac = self.cfg.get("ac_source", "acload")
        ac_order = ["pzload", "acload"] if ac == "pzload" else ["acload", "pzload"]
        ac_kinds = {"acload": EntryPoint.AC_LOAD, "pzload": EntryPoint.PZ_LOAD}
        ac_phase = next((p for p in ac_order if has(ac_kinds[p])), None)

        order = ["setup", "temperature", "load"]
        if ac_phase is not None:
            order.append(ac_phase)
        order.append("trunc")
        return order

    def generate(self):
        """Run every phase and merge the results."""
        export = self.cfg.get("export", dfl.ExportFlags.ALL)

        for name in self.phase_order():
            cls = get_phase(name)
            if not self.source.has_entry_point(cls.entry_point):
                logger.info("%s: no entry point, skipped", name)
                continue
            # Setup always runs, later phases need its tables
            if name != "setup" and not (cls.flag & export):
                logger.info("%s: not exported", name)
                continue

            phase = cls(self.source, self.circuit, self.diagnostics, self.setup)
            self.model_code[name] = phase.export_model(self.model_params)
            self.device_code[name] = phase.export_device(self.model_params, self.device_params)
            self.phases[name] = phase
            logger.info(
                "%s: %d model locals, %d device locals, %d shared",
                name, len(phase.model_variables), len(phase.device_variables), len(phase.shared_variables),
            )

            # After setup the state slot names are known
            if name == "setup":
                self.states = extract_states(self.source, phase.states_variable)

            self.merge_shared(phase)
            self.model_extra |= phase.model_variables_extra
            self.device_extra |= phase.device_variables_extra

        self.resolve_extra()

        setup = self.setup
        if setup is not None:
            self.model_params.apply_defaults(setup.model_defaults)
            self.device_params.apply_defaults(setup.device_defaults)
        states_variable = setup.states_variable if setup is not None else None
        for params in (self.model_params, self.device_params):
            params.update_methods(states_variable, self.prefix, self.circuit)

    def merge_shared(self, phase):
        """Add the shared locals of a phase to the global table.

        Raises:
            SharedVariableConflictError: A shared local was inferred with
                another type in an earlier phase.
        """
        for var, type_name in phase.shared_variables.items():
            known = self.shared_variables.get(var)
            if known is not None and known != type_name:
                raise SharedVariableConflictError(var, known, type_name, phase.phase)
            self.shared_variables[var] = type_name

    def resolve_extra(self):
        """Remove fields declared elsewhere from the extra sets and report the rest."""
        self.model_extra -= self.model_params.variables
        self.model_extra -= set(self.shared_variables)

        self.device_extra -= self.device_params.variables
        self.device_extra -= set(self.states)
        self.device_extra -= set(self.nodes)
        setup = self.setup
        if setup is not None:
            self.device_extra.discard(setup.states_variable)

        for var in sorted(self.model_extra):
            self.diagnostics.warn(EXTRA_VARIABLE, f"Model variable '{var}' is not a parameter, declared as a field")
        for var in sorted(self.device_extra):
            self.diagnostics.warn(EXTRA_VARIABLE, f"Device variable '{var}' is not a parameter, declared as a field")

    @property
    def nodes(self) -> list[str]:
        """Node index fields of the device, external nodes first."""
        setup = self.setup
        if setup is None:
            return []
        external = setup.external_nodes
        internal = [n for n in setup.nodes if n not in external]
        internal += sorted(n for n in setup.created_nodes if n not in setup.nodes)
        return external + internal

    def states_count(self) -> str | None:
        """Number of state slots, with a ``#define`` resolved to its value."""
        setup = self.setup
        if setup is None or setup.states_count is None:
            return None
        count = setup.states_count
        if not count.isdigit():
            count = extract_constant(self.source, count) or count
        return count


def _find_file(folder: Path, suffix: str, required: bool = True) -> str | None:
    """Name of the single file in *folder* ending with *suffix*."""
    if not folder.is_dir():
        raise DeviceInfoError("Not a directory", folder)
    found = sorted(p.name for p in folder.iterdir() if p.is_file() and p.name.lower().endswith(suffix))
    if len(found) == 1:
        return found[0]
    if required:
        raise DeviceInfoError(f"Expected exactly one '*{suffix}' file, found {len(found)}", folder)
    return None
