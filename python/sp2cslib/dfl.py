# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from enum import Flag, auto

from cdevparser.device import SPICE3_ENTRY_POINTS, SPICE3_INFO_FIELDS


class ExportFlags(Flag):
    """Phases written to the generated classes."""

    SETUP = auto()
    TEMPERATURE = auto()
    LOAD = auto()
    ACLOAD = auto()
    PZLOAD = auto()
    TRUNCATE = auto()

    ALL = SETUP | TEMPERATURE | LOAD | ACLOAD | PZLOAD | TRUNCATE

    @classmethod
    def parse(cls, text):
        """
        Parses a comma separated list of flag names (case insensitive).
        """
        result = cls(0)
        for name in text.split(","):
            name = name.strip().upper()
            if not name:
                continue
            try:
                result |= cls[name]
            except KeyError:
                raise ValueError(f"Unknown export flag '{name}'")
        return result


def default_config():
    """
    Returns a default configuration.
    """
    return {
        # Device folder and its special files
        "folder": ".",
        "itf": None,
        "defs": None,
        "defined": [],

        # Layout of the device info structure
        "entry_points": list(SPICE3_ENTRY_POINTS),
        "info_fields": dict(SPICE3_INFO_FIELDS),

        # What to translate
        "export": ExportFlags.ALL,
        "ac_source": "acload",

        # Identifier of the circuit in the legacy source
        "circuit": "ckt",

        # Output formatting
        "columns": 120,
        "indent": "\t",
        "namespace": "SpiceSharp.Components",
        "usings": [
            "System",
            "System.Numerics",
            "SpiceSharp.Circuits",
            "SpiceSharp.Diagnostics",
            "SpiceSharp.Parameters",
        ],
    }
