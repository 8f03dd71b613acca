# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""SPICE3 device model to SpiceSharp class translator.

The translator reads a device folder through :mod:`cdevparser`, runs one
phase translator per exported entry point and assembles a model class and a
device class with :class:`sp2cslib.generator.ClassGenerator`.
"""
