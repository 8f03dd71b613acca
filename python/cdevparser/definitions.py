# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""State slot names from the definitions header."""

import logging
import re

logger = logging.getLogger("sp2cs.source")


def extract_states(source, states_variable: str) -> dict[str, int]:
    """Return the state slot names of a device mapped to their offsets.

    The definitions header names each slot relative to the instance's state
    base variable::

        #define DIOvoltage DIOstate
        #define DIOcurrent DIOstate+1

    Args:
        source: A :class:`cdevparser.device.DeviceSource`
        states_variable: Name of the state base variable found in setup
    """
    if not source.defs or not states_variable:
        return {}

    content = source.read(source.defs, elide=False)
    pattern = re.compile(
        rf"^[ \t]*#[ \t]*define[ \t]+(?P<name>\w+)[ \t]+\(?[ \t]*{re.escape(states_variable)}"
        rf"(?:[ \t]*\+[ \t]*(?P<offset>\d+))?[ \t]*\)?[ \t]*(?:/[/*].*)?$",
        re.MULTILINE,
    )
    states = {}
    for m in pattern.finditer(content):
        states.setdefault(m.group("name"), int(m.group("offset") or 0))
    logger.debug("State slots: %s", ", ".join(states))
    return states


def extract_constant(source, name: str) -> str | None:
    """Return the literal value of ``#define NAME <number>``, if any.

    The definitions header is searched first, then every other file.
    """
    pattern = re.compile(
        rf"^[ \t]*#[ \t]*define[ \t]+{re.escape(name)}[ \t]+\(?[ \t]*(?P<value>[+-]?\d+(?:\.\d*)?)[ \t]*\)?[ \t]*(?:/[/*].*)?$",
        re.MULTILINE,
    )
    files = [source.defs] if source.defs else []
    files += [p.name for p in source.files() if p.name not in files]
    for filename in files:
        m = pattern.search(source.read(filename, elide=False))
        if m:
            return m.group("value")
    return None
