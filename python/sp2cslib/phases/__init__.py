# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Phase translators, one per exported entry point.

Each phase is an :class:`sp2cslib.iterator.IterationSplit` specialized for
one entry point. Phases register themselves under a name so the generator
can look them up in a fixed order.
"""

_PHASE_REGISTRY: dict[str, type] = {}


def register_phase(name: str):
    """Decorator to register a phase translator."""

    def decorator(cls):
        _PHASE_REGISTRY[name.lower()] = cls
        return cls

    return decorator


def get_phase(name: str) -> type:
    """Get a phase translator class by name.

    Raises:
        ValueError: If no phase is registered under *name*
    """
    name_lower = name.lower()
    if name_lower not in _PHASE_REGISTRY:
        available = ", ".join(sorted(_PHASE_REGISTRY.keys()))
        raise ValueError(f"Unknown phase '{name}'. Available: {available}")
    return _PHASE_REGISTRY[name_lower]


def list_phases() -> list[str]:
    return sorted(_PHASE_REGISTRY.keys())


# Register the built-in phases
from sp2cslib.phases import setup as _setup  # noqa: E402, F401
from sp2cslib.phases import temperature as _temperature  # noqa: E402, F401
from sp2cslib.phases import load as _load  # noqa: E402, F401
from sp2cslib.phases import acload as _acload  # noqa: E402, F401
from sp2cslib.phases import pzload as _pzload  # noqa: E402, F401
from sp2cslib.phases import trunc as _trunc  # noqa: E402, F401

__all__ = ["register_phase", "get_phase", "list_phases"]
