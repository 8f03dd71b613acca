# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Collector for non-fatal translation problems.

Problems that do not stop the translation (an unknown parameter ID, a
variable whose type could not be found, ...) are appended to a
:class:`Diagnostics` object that is passed through the pipeline. The
caller drains it once the device has been generated.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger("sp2cs.diagnostics")

UNRESOLVED_PARAMETER_ID = "unresolved-parameter-id"
COULD_NOT_PROCESS_ID = "could-not-process-id"
UNRESOLVED_TYPE = "unresolved-type"
EXTRA_VARIABLE = "extra-variable"
FALLTHROUGH_CASE = "fallthrough-case"


@dataclass(frozen=True)
class Diagnostic:
    """A single warning.

    Attributes:
        kind: One of the kind constants of this module
        message: Human readable text
    """

    kind: str
    message: str

    def __str__(self):
        return self.message


class Diagnostics:
    """Append-only list of diagnostics for one run."""

    def __init__(self):
        self._items: list[Diagnostic] = []

    def warn(self, kind: str, message: str) -> Diagnostic:
        d = Diagnostic(kind, message)
        self._items.append(d)
        logger.debug("%s: %s", kind, message)
        return d

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [d for d in self._items if d.kind == kind]

    def drain(self) -> list[Diagnostic]:
        """Return all collected diagnostics and clear the collector."""
        items, self._items = self._items, []
        return items

    def __iter__(self):
        return iter(list(self._items))

    def __len__(self):
        return len(self._items)
