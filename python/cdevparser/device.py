# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Access to the source files of one device model.

A SPICE3 device lives in a folder of C files. The interface-table file
holds the device info structure (``SPICEdev``) that names the device, its
parameter tables and the functions implementing each entry point. This
module reads that structure and locates entry point bodies and top-level
variables in the folder.
"""

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Iterable

from cdevparser.code import extract_block, mask, match_delimiter, remove_comments, split_top_level
from cdevparser.exc import DeviceInfoError, EntryPointNotFoundError, VariableNotFoundError
from cdevparser.preprocess import resolve_conditionals

logger = logging.getLogger("sp2cs.source")


class EntryPoint(Enum):
    """Entry points of a device's dispatch table."""

    PARAM = "param"
    MODEL_PARAM = "model-param"
    LOAD = "load"
    SETUP = "setup"
    UNSETUP = "unsetup"
    PZ_SETUP = "pz-setup"
    TEMPERATURE = "temperature"
    TRUNC = "trunc"
    FIND_BRANCH = "find-branch"
    AC_LOAD = "ac-load"
    ACCEPT = "accept"
    DESTROY = "destroy"
    MODEL_DELETE = "model-delete"
    DELETE = "delete"
    SET_IC = "set-ic"
    ASK = "ask"
    MODEL_ASK = "model-ask"
    PZ_LOAD = "pz-load"
    CONVERGENCE = "convergence"
    SEN_SETUP = "sen-setup"
    SEN_LOAD = "sen-load"
    SEN_UPDATE = "sen-update"
    SEN_AC_LOAD = "sen-ac-load"
    SEN_PRINT = "sen-print"
    SEN_TRUNC = "sen-trunc"
    DISTORTION = "distortion"
    NOISE = "noise"


# Positional order of the method list in a SPICE3 info structure
SPICE3_ENTRY_POINTS = tuple(EntryPoint)

# Positions of the fields of interest in the public part of the info structure
SPICE3_INFO_FIELDS = {
    "name": 0,
    "description": 1,
    "instance_table": 6,
    "model_table": 8,
}

# Designated initializer names used by newer sources
DESIGNATORS = {
    "DEVparam": EntryPoint.PARAM,
    "DEVmodParam": EntryPoint.MODEL_PARAM,
    "DEVload": EntryPoint.LOAD,
    "DEVsetup": EntryPoint.SETUP,
    "DEVunsetup": EntryPoint.UNSETUP,
    "DEVpzSetup": EntryPoint.PZ_SETUP,
    "DEVtemperature": EntryPoint.TEMPERATURE,
    "DEVtrunc": EntryPoint.TRUNC,
    "DEVfindBranch": EntryPoint.FIND_BRANCH,
    "DEVacLoad": EntryPoint.AC_LOAD,
    "DEVaccept": EntryPoint.ACCEPT,
    "DEVdestroy": EntryPoint.DESTROY,
    "DEVmodDelete": EntryPoint.MODEL_DELETE,
    "DEVdelete": EntryPoint.DELETE,
    "DEVsetic": EntryPoint.SET_IC,
    "DEVask": EntryPoint.ASK,
    "DEVmodAsk": EntryPoint.MODEL_ASK,
    "DEVpzLoad": EntryPoint.PZ_LOAD,
    "DEVconvTest": EntryPoint.CONVERGENCE,
    "DEVsenSetup": EntryPoint.SEN_SETUP,
    "DEVsenLoad": EntryPoint.SEN_LOAD,
    "DEVsenUpdate": EntryPoint.SEN_UPDATE,
    "DEVsenAcLoad": EntryPoint.SEN_AC_LOAD,
    "DEVsenPrint": EntryPoint.SEN_PRINT,
    "DEVsenTrunc": EntryPoint.SEN_TRUNC,
    "DEVdisto": EntryPoint.DISTORTION,
    "DEVnoise": EntryPoint.NOISE,
}
_DESIGNATED_INFO_FIELDS = {
    "name": "name",
    "description": "description",
    "instance_table": "instanceParms",
    "model_table": "modelParms",
}

_pat_designator = re.compile(r"^\s*\.\s*(?P<key>\w+)\s*=\s*(?P<value>.*)$", re.DOTALL)


def _entry_value(entry: str) -> str:
    """Normalize an initializer entry: no comments, no ``&``, no whitespace."""
    return re.sub(r"\s+", "", remove_comments(entry)).lstrip("&")


def _string_value(entry: str) -> str:
    """Contents of a string literal entry."""
    return remove_comments(entry).strip().strip('"')


class DeviceSource:
    """The set of source files describing one device.

    Reading the interface-table file happens on construction; afterwards the
    object is not modified. Entry point bodies and variables are looked up
    on demand and never cached.

    Args:
        folder: Folder holding the device's C files
        itf: Name of the interface-table file within *folder*
        defs: Name of the definitions header within *folder*
        defined: Symbols considered defined for ``#ifdef`` resolution
        entry_points: Positional order of the info structure's method list
        info_fields: Positions of name, description and parameter tables
    """

    def __init__(
        self,
        folder: str | Path,
        itf: str,
        defs: str | None = None,
        defined: Iterable[str] = (),
        entry_points: Iterable[EntryPoint] = SPICE3_ENTRY_POINTS,
        info_fields: dict[str, int] | None = None,
    ):
        self.folder = Path(folder)
        self.itf = itf
        self.defs = defs
        self.defined = frozenset(defined)
        self._order = tuple(entry_points)
        self._info_fields = info_fields or SPICE3_INFO_FIELDS

        self.name = ""
        self.description = ""
        self.parameter_variable = ""
        self.model_parameter_variable = ""
        self._methods: dict[EntryPoint, str] = {}

        self._read_info()

    # -------------------------------------------------------------------------
    # File access
    # -------------------------------------------------------------------------

    def files(self) -> list[Path]:
        """All files in the device folder, sorted by name."""
        return sorted(p for p in self.folder.iterdir() if p.is_file())

    def read(self, filename: str | Path, elide: bool = True) -> str:
        """Read a file of the device with its conditionals resolved."""
        path = self.folder / filename
        content = path.read_text(encoding="utf-8", errors="replace")
        return resolve_conditionals(content, self.defined, elide=elide)

    def _search_order(self, preferred: str) -> Iterable[Path]:
        """Yield the preferred file first (if it exists), then all others."""
        first = self.folder / preferred
        if first.is_file():
            yield first
        for path in self.files():
            if path != first:
                yield path

    # -------------------------------------------------------------------------
    # Info structure
    # -------------------------------------------------------------------------

    def _read_info(self) -> None:
        content = self.read(self.itf)
        masked = mask(content)
        found = list(re.finditer(r"\bSPICEdev\s+\w+\s*=\s*[^;]*;", masked))
        if len(found) != 1:
            raise DeviceInfoError(
                f"Expected exactly one SPICEdev structure, found {len(found)}",
                self.folder / self.itf,
            )
        info = content[found[0].start():found[0].end()]
        brace = info.index("{")
        entries = split_top_level(extract_block(info, brace))

        if entries and _pat_designator.match(remove_comments(entries[0])):
            self._read_designated(entries)
        else:
            self._read_positional(entries)

        logger.info(
            "Device '%s': %d entry points, parameter tables %s/%s",
            self.name, len(self._methods),
            self.parameter_variable, self.model_parameter_variable,
        )

    def _read_positional(self, entries: list[str]) -> None:
        public = remove_comments(entries[0]).strip()
        if not public.startswith("{"):
            raise DeviceInfoError("Missing public device information block", self.folder / self.itf)
        fields = split_top_level(extract_block(public, 0))
        try:
            self.name = _string_value(fields[self._info_fields["name"]])
            self.description = _string_value(fields[self._info_fields["description"]])
            self.parameter_variable = _entry_value(fields[self._info_fields["instance_table"]])
            self.model_parameter_variable = _entry_value(fields[self._info_fields["model_table"]])
        except IndexError:
            raise DeviceInfoError("Device information block is too short", self.folder / self.itf)

        names = [_entry_value(e) for e in entries[1:]]
        for kind, name in zip(self._order, names):
            if name and name.lower() != "null":
                self._methods[kind] = name

    def _read_designated(self, entries: list[str]) -> None:
        top = self._designated(entries)
        public = top.get("DEVpublic", "").strip()
        if not public.startswith("{"):
            raise DeviceInfoError("Missing .DEVpublic block", self.folder / self.itf)
        fields = self._designated(split_top_level(extract_block(public, 0)))
        values = {key: fields.get(name, "") for key, name in _DESIGNATED_INFO_FIELDS.items()}
        self.name = _string_value(values["name"])
        self.description = _string_value(values["description"])
        self.parameter_variable = _entry_value(values["instance_table"])
        self.model_parameter_variable = _entry_value(values["model_table"])

        for key, value in top.items():
            kind = DESIGNATORS.get(key)
            name = _entry_value(value)
            if kind is not None and name and name.lower() != "null":
                self._methods[kind] = name

    @staticmethod
    def _designated(entries: list[str]) -> dict[str, str]:
        result = {}
        for entry in entries:
            m = _pat_designator.match(remove_comments(entry))
            if m:
                result[m.group("key")] = m.group("value").strip()
        return result

    # -------------------------------------------------------------------------
    # Entry points and variables
    # -------------------------------------------------------------------------

    @property
    def entry_points(self) -> dict[EntryPoint, str]:
        """Mapping of the entry points present for this device to function names."""
        return dict(self._methods)

    def has_entry_point(self, kind: EntryPoint) -> bool:
        return kind in self._methods

    def entry_point_name(self, kind: EntryPoint) -> str:
        """Return the C function name implementing *kind*."""
        try:
            return self._methods[kind]
        except KeyError:
            raise EntryPointNotFoundError(kind.value, self.folder)

    def get_entry_point(self, kind: EntryPoint) -> str:
        """Return the full definition (signature and body) of an entry point.

        The file named after the function is searched first, then every other
        file in the folder.

        Raises:
            EntryPointNotFoundError: If no file defines the function.
        """
        name = self.entry_point_name(kind)
        func = re.compile(rf"\w+\*?\s*\b{re.escape(name)}\s*\([^)]*\)(?!\s*;)[^{{]*\{{")

        for path in self._search_order(name.lower() + ".c"):
            content = self.read(path.name)
            m = func.search(mask(content))
            if m:
                end = match_delimiter(content, m.end() - 1)
                logger.debug("Found %s in %s", name, path.name)
                return content[m.start():end + 1]

        raise EntryPointNotFoundError(name, self.folder)

    def get_variable(self, type_name: str, name: str = r"\w+") -> str:
        """Return the first top-level ``TYPE NAME[] = ...;`` declaration.

        *name* is a regular expression. The file named after the device is
        searched first, then every other file in the folder.

        Raises:
            VariableNotFoundError: If no file declares the variable.
        """
        variable = re.compile(rf"\b{type_name}\s+{name}\s*(?:\[\s*\])?\s*=[^;]+;")

        for path in self._search_order(self.name.lower() + ".c"):
            content = self.read(path.name)
            m = variable.search(mask(content))
            if m:
                return content[m.start():m.end()]

        raise VariableNotFoundError(type_name, name, self.folder)
