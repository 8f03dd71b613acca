# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Structural errors raised while reading device model sources."""

from pathlib import Path


class SourceError(Exception):
    """Error while reading or scanning device source code."""

    def __init__(self, message: str, file: Path | str | None = None):
        self.file = file
        location = f"{file}: " if file else ""
        super().__init__(f"{location}{message}")


class UnbalancedDelimiterError(SourceError):
    """The text ended before the matching closing delimiter was found."""

    def __init__(self, opening: str, index: int, file: Path | str | None = None):
        self.opening = opening
        self.index = index
        super().__init__(f"Unbalanced '{opening}' at offset {index}", file)


class EntryPointNotFoundError(SourceError):
    """No file in the device folder defines the requested entry point."""

    def __init__(self, name: str, folder: Path | str | None = None):
        self.name = name
        super().__init__(f"Could not find method '{name}'", folder)


class VariableNotFoundError(SourceError):
    """No file in the device folder declares the requested variable."""

    def __init__(self, type_name: str, name: str, folder: Path | str | None = None):
        self.type_name = type_name
        self.name = name
        super().__init__(f"Could not find variable '{type_name} {name}'", folder)


class DeviceInfoError(SourceError):
    """The device info structure is missing, ambiguous or malformed."""


class UnknownParameterTypeError(SourceError):
    """A parameter table entry has no recognized ``IF_*`` value type."""

    def __init__(self, flags: str, file: Path | str | None = None):
        self.flags = flags
        super().__init__(f"Unrecognized type flag '{flags}'", file)
