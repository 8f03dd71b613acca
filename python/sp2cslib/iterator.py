# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Model/instance loop splitting and local variable classification.

Almost every SPICE3 entry point has the same shape::

    int DIOload(GENmodel *inModel, CKTcircuit *ckt)
    {
        <definition>
        for( ; model != NULL; model = model->DIOnextModel ) {
            <model code>
            for (here = model->DIOinstances; here != NULL ;
                    here = here->DIOnextInstance) {
                <device code>
            }
            <more model code>
        }
        return(OK);
    }

:class:`IterationSplit` cuts a body into these regions and works out which
local variables belong to the model class, which to the device class and
which are computed per model but read per device (shared). The phase
translators in :mod:`sp2cslib.phases` build on it.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Protocol

from cdevparser.code import mask, match_delimiter, sub_code

from .diagnostics import Diagnostics, UNRESOLVED_TYPE
from .exc import MissingInstanceIteratorError, MissingModelIteratorError

logger = logging.getLogger("sp2cs.iterator")


class ParameterNames(Protocol):
    """What :func:`apply_parameters` needs to know about a parameter scope."""

    variables: set[str]
    given_variables: dict[str, str]


# Legacy function name -> target function
MATH_FUNCTIONS = {
    "log": "Math.Log",
    "exp": "Math.Exp",
    "FABS": "Math.Abs",
    "fabs": "Math.Abs",
    "MAX": "Math.Max",
    "MIN": "Math.Min",
    "sqrt": "Math.Sqrt",
    "pow": "Math.Pow",
    "sin": "Math.Sin",
    "cos": "Math.Cos",
    "tan": "Math.Tan",
    "atan": "Math.Atan",
    "atan2": "Math.Atan2",
}

# Legacy physical constant -> member of the target's Circuit class
CIRCUIT_CONSTANTS = {
    "REFTEMP": "CONSTRefTemp",
    "CHARGE": "CHARGE",
    "CONSTCtoK": "CONSTCtoK",
    "CONSTboltz": "CONSTBoltz",
    "CONSTroot2": "CONSTroot2",
    "CONSTvt0": "CONSTvt0",
    "CONSTKoverQ": "CONSTKoverQ",
    "CONSTE": "CONSTE",
    "CONSTPI": "CONSTPI",
}

# Local variable declarations, C type -> target type
_DECLARED_TYPES = {
    "double": "double",
    "float": "double",
    "real": "double",
    "int": "int",
    "long": "int",
    "integer": "int",
}

# An assignment to a plain local (never to a member), matched on masked text
_pat_assignment = re.compile(r"(?<![\w.])(?<!->)(?P<var>[A-Za-z_]\w*)\s*=(?!=)\s*[^;]+;")


def _pat_reference(name: str) -> re.Pattern:
    """A bare occurrence of *name*, not preceded by member access."""
    return re.compile(rf"(?<![\w.])(?<!->){re.escape(name)}(?!\w)")


def apply_parameters(
    code: str,
    loop_var: str,
    params: ParameterNames | None,
    leftover: set[str],
    prefix: str = "",
) -> str:
    """Rewrite every ``loop_var->field`` in *code*.

    A given flag becomes ``<prefix><value field>.Given``. A known parameter
    field becomes ``<prefix><field>``; when it owns a given flag and is the
    target of an assignment it becomes ``<prefix><field>.Value``. Any other
    field is emitted bare and added to *leftover*.
    """
    variables = params.variables if params is not None else set()
    given = params.given_variables if params is not None else {}
    flagged = set(given.values())
    pattern = re.compile(rf"(?<!\w){re.escape(loop_var)}\s*->\s*(?P<var>\w+)(?P<assign>\s*=(?!=))?")

    def replace(m):
        var = m.group("var")
        assign = m.group("assign") or ""
        if var in given:
            return prefix + given[var] + ".Given" + assign
        if var not in variables:
            leftover.add(var)
        elif var in flagged and assign:
            return prefix + var + ".Value" + assign
        return prefix + var + assign

    return sub_code(pattern, replace, code)


def apply_general(code: str, circuit: str = "ckt") -> str:
    """Translate math functions, physical constants and circuit accessors."""
    for name, target in MATH_FUNCTIONS.items():
        code = sub_code(re.compile(rf"(?<![\w.]){name}\s*\("), target + "(", code)
    for name, target in CIRCUIT_CONSTANTS.items():
        code = sub_code(re.compile(rf"(?<![\w.]){name}(?!\w)"), "Circuit." + target, code)

    ckt = re.escape(circuit)
    code = sub_code(re.compile(rf"\b{ckt}\s*->\s*CKTgmin\b"), "state.Gmin", code)
    code = sub_code(re.compile(rf"\b{ckt}\s*->\s*CKTtemp\b"), "ckt.State.Temperature", code)
    code = sub_code(re.compile(rf"\b{ckt}\s*->\s*CKTnomTemp\b"), "ckt.State.NominalTemperature", code)
    return code


def member_access_to_dots(code: str) -> str:
    """Replace any remaining ``->`` by ``.``."""
    return sub_code(re.compile(r"\s*->\s*"), ".", code)


class IterationSplit(ABC):
    """An entry point body split at its model and instance loops.

    Attributes:
        definition: Text before the model loop
        model_code: Model loop body without the instance loop
        device_code: Instance loop body
        model_parameter: Model loop variable
        device_parameter: Instance loop variable
        model_variables: Locals used only by model code, name -> type
        device_variables: Locals assigned in device code, name -> type
        shared_variables: Locals computed by the model and read by devices
        model_variables_extra: Model fields not covered by the catalog
        device_variables_extra: Device fields not covered by the catalog
    """

    # Name used in log and error messages
    phase = "iterator"

    def __init__(self, method: str, circuit: str = "ckt", diagnostics: Diagnostics | None = None):
        self.circuit = circuit
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

        self.definition = ""
        self.model_code = ""
        self.device_code = ""
        self.model_parameter = ""
        self.device_parameter = ""

        self.model_variables: dict[str, str] = {}
        self.device_variables: dict[str, str] = {}
        self.shared_variables: dict[str, str] = {}
        self.model_variables_extra: set[str] = set()
        self.device_variables_extra: set[str] = set()

        self.split_loops(method)
        self.classify_variables()

    def split_loops(self, method: str) -> None:
        """Cut *method* into definition, model code and device code.

        Raises:
            MissingModelIteratorError: No model loop header found.
            MissingInstanceIteratorError: No instance loop header found.
        """
        masked = mask(method)
        model_loop = re.compile(
            r"\bfor\s*\(\s*;\s*(?P<var>\w+)\s*!=\s*NULL\s*;\s*"
            r"(?P=var)\s*=\s*(?P=var)\s*->\s*\w+\s*\)\s*\{"
        )
        m = model_loop.search(masked)
        if m is None:
            raise MissingModelIteratorError(self.phase)
        model = m.group("var")
        model_start = m.end() - 1
        model_end = match_delimiter(method, model_start)
        content = method[model_start + 1:model_end]

        instance_loop = re.compile(
            rf"\bfor\s*\(\s*(?P<var>\w+)\s*=\s*{re.escape(model)}\s*->\s*\w+\s*;\s*"
            r"(?P=var)\s*!=\s*NULL\s*;\s*"
            r"(?P=var)\s*=\s*(?P=var)\s*->\s*\w+\s*\)\s*\{"
        )
        m2 = instance_loop.search(mask(content))
        if m2 is None:
            raise MissingInstanceIteratorError(self.phase)
        instance_start = m2.end() - 1
        instance_end = match_delimiter(content, instance_start)

        # Definition runs from the function's opening brace up to the model loop
        brace = masked.find("{")
        if 0 <= brace < m.start():
            self.definition = method[brace + 1:m.start()]
        else:
            self.definition = ""

        parts = (content[:m2.start()].strip(), content[instance_end + 1:].strip())
        self.model_code = " ".join(p for p in parts if p)
        self.device_code = content[instance_start + 1:instance_end].strip()
        self.model_parameter = model
        self.device_parameter = m2.group("var")
        logger.debug(
            "%s: model loop over '%s', instance loop over '%s'",
            self.phase, self.model_parameter, self.device_parameter,
        )

    def classify_variables(self) -> None:
        """Sort the locals assigned in model and device code into roles."""
        masked_model = mask(self.model_code)
        masked_device = mask(self.device_code)

        for m in _pat_assignment.finditer(masked_model):
            var = m.group("var")
            if var in self.shared_variables or var in self.model_variables:
                continue
            ref = _pat_reference(var).search(masked_device)
            first_is_assignment = False
            if ref is not None:
                a = _pat_assignment.match(masked_device, ref.start())
                first_is_assignment = a is not None and a.group("var") == var
            if ref is not None and not first_is_assignment:
                self.shared_variables[var] = self.infer_type(var)
            else:
                self.model_variables[var] = self.infer_type(var)

        for m in _pat_assignment.finditer(masked_device):
            var = m.group("var")
            if var not in self.device_variables:
                self.device_variables[var] = self.infer_type(var)

    def infer_type(self, name: str) -> str:
        """Find the declared type of a local, defaulting to double."""
        decl = re.compile(
            rf"^\s*(?P<type>{'|'.join(_DECLARED_TYPES)})\b[^;]*(?<!\w){re.escape(name)}(?!\w)[^;]*;",
            re.MULTILINE,
        )
        for region in (self.definition, self.model_code, self.device_code):
            m = decl.search(mask(region))
            if m:
                return _DECLARED_TYPES[m.group("type")]
        self.diagnostics.warn(UNRESOLVED_TYPE, f"Could not find type of local variable {name}")
        return "double"

    def export_model_code(self, model_params: ParameterNames | None) -> str:
        """Model code with idioms and model fields translated."""
        code = apply_general(self.model_code, self.circuit)
        return apply_parameters(code, self.model_parameter, model_params, self.model_variables_extra)

    def export_device_code(
        self,
        model_params: ParameterNames | None,
        device_params: ParameterNames | None,
        model: str = "Model",
    ) -> str:
        """Device code with idioms, device fields, model fields and shared locals translated."""
        code = apply_general(self.device_code, self.circuit)
        code = apply_parameters(code, self.device_parameter, device_params, self.device_variables_extra)
        code = apply_parameters(code, self.model_parameter, model_params, self.model_variables_extra, model + ".")
        for name in self.shared_variables:
            code = sub_code(_pat_reference(name), f"{model}.{name}", code)
        return code

    @abstractmethod
    def export_model(self, model_params: ParameterNames | None) -> str:
        """The translated model part of this phase."""

    @abstractmethod
    def export_device(self, model_params: ParameterNames | None, device_params: ParameterNames | None) -> str:
        """The translated device part of this phase."""
