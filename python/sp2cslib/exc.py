# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later


# Errors that abort the translation of a device
class ConverterError(Exception):
    def __init__(self, message, phase=None):
        self.phase = phase
        if phase is not None:
            txt = f"{phase}: {message}"
        else:
            txt = message
        super().__init__(txt)


class MissingModelIteratorError(ConverterError):
    def __init__(self, phase=None):
        super().__init__("Could not find model iterator", phase)


class MissingInstanceIteratorError(ConverterError):
    def __init__(self, phase=None):
        super().__init__("Could not find instance iterator", phase)


class SharedVariableConflictError(ConverterError):
    def __init__(self, name, first, second, phase=None):
        self.name = name
        super().__init__(f"Cannot share variable '{name}' as both {first} and {second}", phase)


class InvalidDeclarationStateError(ConverterError):
    def __init__(self, pid, phase=None):
        self.id = pid
        super().__init__(f"Neither a setter nor a getter exists for ID '{pid}'", phase)
