# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Parameter accessor synthesis.

A SPICE3 device exposes its parameters through a setter entry point (param)
and a getter entry point (ask), each a big switch over parameter IDs. For
every ID the case bodies of both are classified into one of a few shapes and
combined into a single declaration of the generated class:

* ``here->F = value->rValue; here->FGiven = TRUE; break;`` with the matching
  getter becomes a ``Parameter`` carrying its own given flag,
* the same without a given flag becomes a plain auto property,
* anything else touching a common field becomes a custom property,
* a single unrecognized side becomes a free ``Set``/``Get`` method.
"""

import logging
import re
from dataclasses import dataclass, field

from cdevparser.catalog import ParameterDescriptor
from cdevparser.code import extract_method_parameters, extract_switch_cases, format_code, remove_comments
from cdevparser.device import EntryPoint

from .diagnostics import (
    COULD_NOT_PROCESS_ID,
    Diagnostics,
    FALLTHROUGH_CASE,
    UNRESOLVED_PARAMETER_ID,
)
from .exc import InvalidDeclarationStateError

logger = logging.getLogger("sp2cs.accessors")

# Constructor of a flagged field without a default value
_pat_new_parameter = re.compile(r"(new Parameter(?:<[^>]*>)?)\(\);")


# Case body shapes

@dataclass
class DefaultSetWithGiven:
    field: str
    given: str


@dataclass
class DefaultSet:
    field: str


@dataclass
class DefaultGet:
    field: str


@dataclass
class ArbitrarySet:
    """Any setter touching fields.

    Attributes:
        fields: Assigned fields in order of appearance
        given: Presence flag -> value field, for assignments paired with a flag
        body: Setter body with flag-paired assignments turned into ``F.Set(...)``
    """

    fields: list[str]
    given: dict[str, str] = field(default_factory=dict)
    body: str = ""


@dataclass
class ArbitraryGet:
    """Any getter reading fields into the output value.

    Attributes:
        fields: Read fields in order of appearance
    """

    fields: list[str]


@dataclass
class Unrecognized:
    pass


_END = r"(?:return\s*\(?\s*OK\s*\)?\s*;|break\s*;)"


class AccessorClassifier:
    """Classifies setter and getter case bodies.

    Args:
        set_here: Instance/model pointer name in the setter
        set_value: Value holder name in the setter
        get_here: Instance/model pointer name in the getter
        get_value: Value holder name in the getter
    """

    def __init__(self, set_here="here", set_value="value", get_here="here", get_value="value"):
        sh, sv = re.escape(set_here), re.escape(set_value)
        gh, gv = re.escape(get_here), re.escape(get_value)
        self.set_here, self.set_value = set_here, set_value
        self.get_here, self.get_value = get_here, get_value

        self._pat_default_set_given = re.compile(
            rf"^{sh}\s*->\s*(?P<var>\w+)\s*=\s*{sv}\s*->\s*[a-z]Value\s*;\s*"
            rf"{sh}\s*->\s*(?P<given>\w+Given)\s*=\s*TRUE\s*;\s*{_END}\s*$"
        )
        self._pat_default_set = re.compile(
            rf"^{sh}\s*->\s*(?P<var>\w+)\s*=\s*{sv}\s*->\s*[a-z]Value\s*;\s*{_END}\s*$"
        )
        self._pat_default_get = re.compile(
            rf"^{gv}\s*->\s*[a-z]Value\s*=\s*{gh}\s*->\s*(?P<var>\w+)\s*;\s*{_END}\s*$"
        )
        self._pat_given_pair = re.compile(
            rf"{sh}\s*->\s*(?P<var>\w+)\s*=\s*(?P<value>[^;]+);\s*{sh}\s*->\s*(?P<given>\w+Given)\s*=\s*TRUE\s*;"
        )
        self._pat_loose_set = re.compile(rf"{sh}\s*->\s*(?P<var>\w+)\s*=(?!=)\s*[^;]+;")
        self._pat_any_get = re.compile(rf"=[^;]*{gh}\s*->\s*(?P<var>\w+)[^;]*;")

    def classify_set(self, body: str):
        """Return the most specific shape of a setter body."""
        m = self._pat_default_set_given.match(body)
        if m:
            return DefaultSetWithGiven(m.group("var"), m.group("given"))
        m = self._pat_default_set.match(body)
        if m:
            return DefaultSet(m.group("var"))
        return self.scan_set(body)

    def classify_get(self, body: str):
        """Return the most specific shape of a getter body."""
        m = self._pat_default_get.match(body)
        if m:
            return DefaultGet(m.group("var"))
        return self.scan_get(body)

    def scan_set(self, body: str):
        """Collect every field a setter touches."""
        fields = []
        given = {}

        def paired(m):
            var = m.group("var")
            if var not in fields:
                fields.append(var)
            given.setdefault(m.group("given"), var)
            return f"{var}.Set({m.group('value').strip()});"

        rewritten = self._pat_given_pair.sub(paired, body)
        for m in self._pat_loose_set.finditer(rewritten):
            var = m.group("var")
            if var not in given and var not in fields:
                fields.append(var)
        if not fields:
            return Unrecognized()
        return ArbitrarySet(fields, given, rewritten)

    def scan_get(self, body: str):
        """Collect every field a getter reads into the output value."""
        fields = []
        for m in self._pat_any_get.finditer(body):
            if m.group("var") not in fields:
                fields.append(m.group("var"))
        if not fields:
            return Unrecognized()
        return ArbitraryGet(fields)

    def format_setter(self, body: str) -> str:
        """Setter body as a method body taking ``value``."""
        body = re.sub(rf"{re.escape(self.set_here)}\s*->\s*", "", body)
        body = re.sub(rf"{re.escape(self.set_value)}\s*->\s*[a-z]Value", "value", body)
        return format_code(_strip_terminator(body))

    def format_getter(self, body: str) -> str:
        """Getter body as a method body returning the value."""
        body = re.sub(rf"{re.escape(self.get_value)}\s*->\s*[a-z]Value\s*=\s*(?P<expr>[^;]+);", r"return \g<expr>;", body)
        body = re.sub(rf"{re.escape(self.get_here)}\s*->\s*", "", body)
        return format_code(_strip_terminator(body))


def _strip_terminator(body: str) -> str:
    body = re.sub(r"break\s*;\s*$", "", body.strip(), flags=re.IGNORECASE)
    body = re.sub(r"return\s*\(?\s*OK\s*\)?\s*;\s*$", "", body, flags=re.IGNORECASE)
    return body.strip()


def _flagged_declaration(name: str, type_name: str, numeric: bool) -> str:
    if numeric:
        return f"public Parameter {name} {{ get; }} = new Parameter();"
    return f"public Parameter<{type_name}> {name} {{ get; }} = new Parameter<{type_name}>();"


def _find_here(content: str, parameter: str | None) -> str:
    """Find the local that casts *parameter* to the concrete instance or model type."""
    if parameter is None:
        return "here"
    m = re.search(rf"(\w+)\s*\*\s*(?P<var>\w+)\s*=\s*\(\s*\1\s*\*\s*\)\s*{re.escape(parameter)}\b", content)
    if m:
        return m.group("var")
    return parameter


class ParameterSet:
    """Declarations for the parameters of one scope (device or model).

    Args:
        descriptors: Catalog of the scope, keyed by ID
        set_cases: Setter case bodies keyed by ID
        get_cases: Getter case bodies keyed by ID
        classifier: Classifier configured with the setter/getter names
        diagnostics: Collector for non-fatal problems

    Attributes:
        declarations: Field name -> declaration text
        methods: Declarations without a field identity
        variables: Fields owned by the scope
        given_variables: Presence flag -> value field
    """

    def __init__(
        self,
        descriptors: dict[str, ParameterDescriptor],
        set_cases: dict[str, str] | None = None,
        get_cases: dict[str, str] | None = None,
        classifier: AccessorClassifier | None = None,
        diagnostics: Diagnostics | None = None,
    ):
        self.descriptors = descriptors
        self.set_cases = set_cases or {}
        self.get_cases = get_cases or {}
        self.classifier = classifier or AccessorClassifier()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

        self.declarations: dict[str, str] = {}
        self.methods: list[str] = []
        self.variables: set[str] = set()
        self.given_variables: dict[str, str] = {}

        self.build()

    @classmethod
    def from_source(cls, source, descriptors, set_kind: EntryPoint, get_kind: EntryPoint, diagnostics=None):
        """Read the setter and getter of a scope from a device source.

        A missing entry point contributes no cases.
        """
        set_cases, set_params, set_content = _read_cases(source, set_kind)
        get_cases, get_params, get_content = _read_cases(source, get_kind)

        # param(int id, IFvalue *value, GENinstance *inst, ...)
        # ask(CKTcircuit *ckt, GENinstance *inst, int id, IFvalue *value, ...)
        classifier = AccessorClassifier(
            set_here=_find_here(set_content, _nth(set_params, 2)),
            set_value=_nth(set_params, 1) or "value",
            get_here=_find_here(get_content, _nth(get_params, 1)),
            get_value=_nth(get_params, 3) or "value",
        )
        return cls(descriptors, set_cases, get_cases, classifier, diagnostics)

    def build(self) -> None:
        ids = list(self.set_cases)
        ids += [pid for pid in self.get_cases if pid not in self.set_cases]

        for pid in ids:
            set_body = self._body(self.set_cases, pid)
            get_body = self._body(self.get_cases, pid)
            info = self.descriptors.get(pid)
            if info is None:
                self.diagnostics.warn(UNRESOLVED_PARAMETER_ID, f"Could not find definition for ID '{pid}'")
                continue
            if set_body is None and get_body is None:
                # Falls through to a sibling label
                self.diagnostics.warn(FALLTHROUGH_CASE, f"ID '{pid}' has no own logic, it falls through")
                continue
            self.add_declaration(info, set_body, get_body)

    @staticmethod
    def _body(cases: dict[str, str], pid: str) -> str | None:
        if pid not in cases:
            return None
        body = remove_comments(cases[pid]).strip()
        return body or None

    def add_declaration(self, info: ParameterDescriptor, set_body: str | None, get_body: str | None) -> None:
        """Combine the setter and getter of one ID into a declaration.

        Raises:
            InvalidDeclarationStateError: If both bodies are None.
        """
        if set_body is None and get_body is None:
            raise InvalidDeclarationStateError(info.id)

        type_name = info.type.target
        attributes = [f'SpiceName("{n}")' for n in info.names]
        attributes.append(f'SpiceInfo("{info.description}")')
        lines = ["[" + ", ".join(attributes) + "]"]
        name = None
        cls = self.classifier

        s = cls.classify_set(set_body) if set_body is not None else None
        g = cls.classify_get(get_body) if get_body is not None else None

        if s is not None and g is not None:
            if isinstance(s, DefaultSetWithGiven) and isinstance(g, DefaultGet) and s.field == g.field:
                name = s.field
                self.given_variables[s.given] = name
                lines.append(_flagged_declaration(name, type_name, info.type.numeric))
            elif isinstance(s, DefaultSet) and isinstance(g, DefaultGet) and s.field == g.field:
                name = s.field
                lines.append(f"public {type_name} {name} {{ get; set; }}")
            else:
                aset = cls.scan_set(set_body)
                aget = cls.scan_get(get_body)
                common = []
                if isinstance(aset, ArbitrarySet) and isinstance(aget, ArbitraryGet):
                    common = [f for f in aset.fields if f in aget.fields]
                if not common:
                    self.diagnostics.warn(COULD_NOT_PROCESS_ID, f"Could not process ID '{info.id}'")
                    return
                name = common[0]
                for flag, var in aset.given.items():
                    self.given_variables.setdefault(flag, var)
                lines += [
                    f"public {type_name} {info.id}",
                    "{",
                    "get",
                    "{",
                    cls.format_getter(get_body),
                    "}",
                    "set",
                    "{",
                    cls.format_setter(aset.body),
                    "}",
                    "}",
                ]
                if name in self.given_variables.values():
                    lines.append(_flagged_declaration(name, type_name, info.type.numeric))
                else:
                    lines.append(f"private {type_name} {name};")

        elif s is not None:
            if isinstance(s, DefaultSetWithGiven):
                name = s.field
                self.given_variables[s.given] = name
                lines.append(_flagged_declaration(name, type_name, info.type.numeric))
            elif isinstance(s, DefaultSet):
                name = s.field
                lines.append(f"public {type_name} {name} {{ get; set; }}")
            else:
                body = set_body
                if isinstance(s, ArbitrarySet):
                    for flag, var in s.given.items():
                        self.given_variables.setdefault(flag, var)
                    body = s.body
                lines += [f"public void Set{info.id}({type_name} value)", "{", cls.format_setter(body), "}"]

        else:
            if isinstance(g, DefaultGet):
                name = g.field
                lines.append(f"public {type_name} {name} {{ get; private set; }}")
            else:
                lines += [f"public {type_name} Get{info.id}(Circuit ckt)", "{", cls.format_getter(get_body), "}"]

        text = "\n".join(lines)
        if name is None:
            self.methods.append(text)
        elif name in self.declarations:
            self.diagnostics.warn(COULD_NOT_PROCESS_ID, f"Field '{name}' of ID '{info.id}' is already declared")
        else:
            self.variables.add(name)
            self.declarations[name] = text
        logger.debug("ID %s -> %s", info.id, name or "method")

    def apply_defaults(self, defaults: dict[str, str]) -> None:
        """Write default values into the constructors of flagged fields."""
        for name, value in defaults.items():
            if name in self.declarations:
                self.declarations[name] = _pat_new_parameter.sub(
                    lambda m: f"{m.group(1)}({value});", self.declarations[name]
                )

    def update_methods(self, states_variable: str | None, device_name: str, circuit: str = "ckt") -> None:
        """Rewrite legacy idioms left in custom accessors and free methods."""
        ckt = re.escape(circuit)
        prefix = (
            re.compile(rf"(?:\b|(?<=\bGet)|(?<=\bSet)){re.escape(device_name)}_", re.IGNORECASE)
            if device_name else None
        )

        def rewrite(code):
            code = re.sub(
                rf"\*\s*\(\s*{ckt}\s*->\s*CKTstate(?P<state>\d+)\s*\+\s*(?P<var>\w+)\s*\)",
                lambda m: f"ckt.State.States[{m.group('state')}][{states_variable} + {m.group('var')}]",
                code,
            )
            code = re.sub(
                rf"\*\s*\(\s*{ckt}\s*->\s*CKTrhsOld\s*\+\s*(?P<var>\w+)\s*\)",
                r"ckt.State.Real.Solution[\g<var>]",
                code,
            )
            if prefix is not None:
                code = prefix.sub("", code)
            code = re.sub(r"\s*->\s*", ".", code)

            # Short form for single statement bodies
            code = re.sub(r"\b(get|set)\s*\{\s*(?:return\s+)?(?P<stmt>[^;{}]+);\s*\}", r"\1 => \g<stmt>;", code)
            code = re.sub(r"\)\s*\{\s*(?:return\s+)?(?P<stmt>[^;{}]+);\s*\}\s*$", r") => \g<stmt>;", code)
            return code

        for key in list(self.declarations):
            self.declarations[key] = rewrite(self.declarations[key])
        self.methods = [rewrite(m) for m in self.methods]


def _nth(items: list[str], index: int) -> str | None:
    return items[index] if index < len(items) else None


def _read_cases(source, kind: EntryPoint) -> tuple[dict[str, str], list[str], str]:
    """Switch cases, parameter names and full text of an entry point."""
    if not source.has_entry_point(kind):
        return {}, [], ""
    content = source.get_entry_point(kind)
    name = source.entry_point_name(kind)
    return extract_switch_cases(content), extract_method_parameters(content, re.escape(name)), content
