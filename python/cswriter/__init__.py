# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""C# source writer.

The translated pieces of a device arrive as blocks of code carrying whatever
indentation the legacy source had. This package strips that indentation,
re-indents every line by its brace depth and wraps long lines at operator
and comma boundaries.

Output example:
    namespace SpiceSharp.Components
    {
        public class Diode : CircuitComponent
        {
            public Parameter DIOarea { get; } = new Parameter(1.0);
        }
    }
"""

from cswriter.writer import CodeWriter, write_code

__all__ = [
    "CodeWriter",
    "write_code",
]
