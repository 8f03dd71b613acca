# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Structural reader for SPICE3 style C device models.

This package knows just enough about C to take a device folder apart: it
balances delimiters while skipping strings and comments, resolves
``#ifdef``/``#ifndef`` blocks, finds the device info structure and the
functions it names, and parses the parameter descriptor tables.

It never builds a syntax tree. Everything is delimiter matching plus regular
expressions applied to plain code (strings and comments masked out).

Basic usage:
    from cdevparser import DeviceSource, EntryPoint, extract_catalog

    dev = DeviceSource("dio", "diitf.h", "diodefs.h")
    body = dev.get_entry_point(EntryPoint.LOAD)
    catalog = extract_catalog(dev)
"""

from cdevparser.catalog import ParameterCatalog, ParameterDescriptor, ParamType, extract_catalog, parse_table
from cdevparser.code import (
    extract_block,
    extract_method_parameters,
    extract_switch_cases,
    format_code,
    mask,
    match_delimiter,
    remove_comments,
)
from cdevparser.definitions import extract_constant, extract_states
from cdevparser.device import DeviceSource, EntryPoint, SPICE3_ENTRY_POINTS, SPICE3_INFO_FIELDS
from cdevparser.exc import (
    DeviceInfoError,
    EntryPointNotFoundError,
    SourceError,
    UnbalancedDelimiterError,
    UnknownParameterTypeError,
    VariableNotFoundError,
)
from cdevparser.preprocess import resolve_conditionals

__all__ = [
    # Source access
    "DeviceSource",
    "EntryPoint",
    "SPICE3_ENTRY_POINTS",
    "SPICE3_INFO_FIELDS",
    "resolve_conditionals",
    # Scanning
    "extract_block",
    "extract_method_parameters",
    "extract_switch_cases",
    "format_code",
    "mask",
    "match_delimiter",
    "remove_comments",
    # Parameters and states
    "ParameterCatalog",
    "ParameterDescriptor",
    "ParamType",
    "extract_catalog",
    "extract_constant",
    "extract_states",
    "parse_table",
    # Errors
    "SourceError",
    "UnbalancedDelimiterError",
    "EntryPointNotFoundError",
    "VariableNotFoundError",
    "DeviceInfoError",
    "UnknownParameterTypeError",
]
