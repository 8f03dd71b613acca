# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Parameter descriptor tables.

Every device declares two static ``IFparm`` arrays, one for instance
parameters and one for model parameters. Each entry is a macro call such as

    IOP("area", DIO_AREA, IF_REAL, "Area factor"),

naming the access kind, the user visible name, the numeric ID the parameter
setter/getter switch on, the value type and a description. Several names may
share one ID; they become aliases of a single descriptor.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from cdevparser.code import extract_block, remove_comments
from cdevparser.exc import UnknownParameterTypeError

logger = logging.getLogger("sp2cs.source")


class ParamType(Enum):
    """Value type of a parameter, with its target type name."""

    REAL = "real"
    FLAG = "flag"
    COMPLEX = "complex"
    STRING = "string"
    REAL_VECTOR = "real-vector"
    INTEGER = "integer"

    @property
    def target(self) -> str:
        return _TARGET_TYPES[self]

    @property
    def numeric(self) -> bool:
        """Scalar numbers use the plain ``Parameter`` wrapper."""
        return self in (ParamType.REAL, ParamType.INTEGER)

    @classmethod
    def from_flags(cls, flags: str) -> "ParamType":
        """Map an ``IF_*`` type expression (possibly OR-ed) to a type.

        Raises:
            UnknownParameterTypeError: If no known type flag is present.
        """
        tokens = [t.strip().upper() for t in flags.split("|")]
        if any("VEC" in t for t in tokens):
            return cls.REAL_VECTOR
        for token in tokens:
            if token in _FLAG_TYPES:
                return _FLAG_TYPES[token]
        raise UnknownParameterTypeError(flags)


_TARGET_TYPES = {
    ParamType.REAL: "double",
    ParamType.FLAG: "bool",
    ParamType.COMPLEX: "Complex",
    ParamType.STRING: "string",
    ParamType.REAL_VECTOR: "double[]",
    ParamType.INTEGER: "int",
}

_FLAG_TYPES = {
    "IF_REAL": ParamType.REAL,
    "IF_FLAG": ParamType.FLAG,
    "IF_COMPLEX": ParamType.COMPLEX,
    "IF_STRING": ParamType.STRING,
    "IF_INTEGER": ParamType.INTEGER,
}


@dataclass
class ParameterDescriptor:
    """One parameter ID of a scope.

    Attributes:
        id: ID token the setter/getter switch statements use
        access: Access macro of the first entry (IOP, IP, OP, ...)
        names: Alias names, in declaration order
        type: Value type
        description: Description of the first entry
    """

    id: str
    access: str
    names: list[str] = field(default_factory=list)
    type: ParamType = ParamType.REAL
    description: str = ""

    def add_name(self, name: str) -> None:
        if name not in self.names:
            self.names.append(name)


@dataclass
class ParameterCatalog:
    """Descriptors of both scopes, keyed by ID.

    Attributes:
        device: Instance parameters
        model: Model parameters
    """

    device: dict[str, ParameterDescriptor] = field(default_factory=dict)
    model: dict[str, ParameterDescriptor] = field(default_factory=dict)


_pat_entry = re.compile(
    r"(?P<access>\w+)\s*\(\s*"
    r'"(?P<name>(?:[^"\\]|\\.)*)"\s*,\s*'
    r"(?P<id>\w+)\s*,\s*"
    r"(?P<type>IF_\w+(?:\s*\|\s*IF_\w+)*)\s*,\s*"
    r'"(?P<desc>(?:[^"\\]|\\.)*)"\s*\)'
)


def parse_table(table: str) -> dict[str, ParameterDescriptor]:
    """Parse the text of one ``IFparm`` array declaration.

    Returns descriptors keyed by ID in order of first appearance.
    """
    table = remove_comments(table)
    brace = table.find("{")
    body = extract_block(table, brace) if brace >= 0 else table

    result: dict[str, ParameterDescriptor] = {}
    for m in _pat_entry.finditer(body):
        pid = m.group("id")
        desc = result.get(pid)
        if desc is None:
            desc = ParameterDescriptor(
                id=pid,
                access=m.group("access"),
                type=ParamType.from_flags(m.group("type")),
                description=m.group("desc"),
            )
            result[pid] = desc
        desc.add_name(m.group("name"))
    return result


def extract_catalog(source) -> ParameterCatalog:
    """Build the catalog of a device from its two parameter tables.

    Args:
        source: A :class:`cdevparser.device.DeviceSource`

    Raises:
        VariableNotFoundError: If a table cannot be located.
    """
    catalog = ParameterCatalog()
    if source.parameter_variable:
        catalog.device = parse_table(source.get_variable("IFparm", re.escape(source.parameter_variable)))
    if source.model_parameter_variable:
        catalog.model = parse_table(source.get_variable("IFparm", re.escape(source.model_parameter_variable)))
    logger.info(
        "Parameter catalog: %d instance IDs, %d model IDs",
        len(catalog.device), len(catalog.model),
    )
    return catalog
