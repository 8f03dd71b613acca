#!/usr/bin/python3

# SPDX-FileCopyrightText: 2025 ChipFlow
#
# SPDX-License-Identifier: AGPL-3.0-or-later

# SPICE3 device model to SpiceSharp class translator
# Use as module, i.e. python3 -m sp2cs ...
# or edit hashbang line and make it executable.

import logging
import sys

from cdevparser.exc import SourceError
from sp2cslib import dfl
from sp2cslib.exc import ConverterError
from sp2cslib.generator import ClassGenerator

help = """SPICE3 device model to SpiceSharp class translator.
Usage: python3 -m sp2cs [<args>] <device folder> [<output prefix>]

Translates the C sources of one device into a model class and a device
class. With an output prefix they are written to <prefix>Model.cs and
<prefix>.cs, otherwise both are printed to the standard output.

Arguments:
  -h --help           print help
  -i --itf            interface-table file (default: the only *itf.h file)
  -d --defs           definitions file (default: the only *defs.h file)
  -D --define         treat a symbol as defined in #ifdef blocks,
                      can be given more than once
  -e --export         comma separated list of methods to generate
                      (setup, temperature, load, acload, pzload,
                      truncate, all; default is all)
  --pz                take the AcLoad method from the pole-zero load
                      if the device has one
  -c --columns        wrap lines this long (default 120)
  -v --verbose        print progress, give twice for details
"""


def main(argv):
    ndx = 1
    folder = None
    prefix = None
    itf = None
    defs = None
    defined = []
    export = dfl.ExportFlags.ALL
    ac_source = "acload"
    columns = 120
    verbose = 0

    def value():
        if ndx + 1 >= len(argv):
            print("Too few arguments.")
            sys.exit(1)
        return argv[ndx + 1]

    while ndx < len(argv):
        arg = argv[ndx]
        if arg[0] == "-":
            if arg == "--help" or arg == "-h":
                # Print help and exit
                print(help)
                sys.exit(0)
            elif arg == "-i" or arg == "--itf":
                itf = value()
                ndx += 1
            elif arg == "-d" or arg == "--defs":
                defs = value()
                ndx += 1
            elif arg == "-D" or arg == "--define":
                defined.append(value())
                ndx += 1
            elif arg == "-e" or arg == "--export":
                try:
                    export = dfl.ExportFlags.parse(value())
                except ValueError as e:
                    print(e)
                    sys.exit(1)
                ndx += 1
            elif arg == "--pz":
                ac_source = "pzload"
            elif arg == "-c" or arg == "--columns":
                columns = int(value())
                ndx += 1
            elif arg == "-v" or arg == "--verbose":
                verbose += 1
            elif arg == "-vv":
                verbose += 2
            else:
                print("Unknown argument:", arg)
                print(help)
                sys.exit(1)
        else:
            folder = arg

            if ndx + 2 < len(argv):
                print("Too many arguments.")
                print(help)
                sys.exit(1)

            if ndx + 2 == len(argv):
                prefix = argv[ndx + 1]
            break

        ndx += 1

    if folder is None:
        print("Need device folder.")
        print(help)
        sys.exit(1)

    logging.basicConfig(
        level=logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cfg = dfl.default_config()
    cfg["folder"] = folder
    cfg["itf"] = itf
    cfg["defs"] = defs
    cfg["defined"] = defined
    cfg["export"] = export
    cfg["ac_source"] = ac_source
    cfg["columns"] = columns

    try:
        generator = ClassGenerator(cfg)
        if prefix is None:
            generator.export_model(sys.stdout)
            print()
            generator.export_device(sys.stdout)
        else:
            generator.export_model(prefix + "Model.cs")
            generator.export_device(prefix + ".cs")
    except (SourceError, ConverterError) as e:
        print("Error:", e, file=sys.stderr)
        return 1

    for d in generator.diagnostics.drain():
        print("Warning:", d, file=sys.stderr)
    return 0


def cli():
    sys.exit(main(sys.argv))


if __name__ == "__main__":
    cli()
