#!/usr/bin/env python3
"""
trellishmm utilities: inspect, dot.

Usage:
    trellishmm-utils inspect model.json
    trellishmm-utils dot model.json --timepoint 5 --depth 2 -o graph.dot
"""

import argparse
import os
import sys

from trellishmm.core.errors import TrellisHMMError
from trellishmm.core.model_io import load_model
from trellishmm.core.report import format_model, trellis_to_dot


def cmd_inspect(args):
    """Print the model summary."""
    if not os.path.exists(args.model):
        print(f"Error: File not found: {args.model}", file=sys.stderr)
        sys.exit(1)

    try:
        model = load_model(args.model)
    except (TrellisHMMError, ValueError, OSError) as e:
        print(f"Error: cannot load {args.model}: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Model: {args.model}")
    print(format_model(model))


def cmd_dot(args):
    """Write the trellis around a timepoint as a Graphviz DOT file."""
    try:
        model = load_model(args.model)
    except (TrellisHMMError, ValueError, OSError) as e:
        print(f"Error: cannot load {args.model}: {e}", file=sys.stderr)
        sys.exit(1)
    if not model.has_all_data():
        print("Error: model has no observations; cannot build a trellis", file=sys.stderr)
        sys.exit(1)

    try:
        dot = trellis_to_dot(model, args.timepoint, args.depth)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.output:
        with open(args.output, 'w') as f:
            f.write(dot)
        print(f"Wrote {args.output}")
    else:
        sys.stdout.write(dot)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='trellishmm-utils',
        description='trellishmm utilities: model inspection and trellis export',
    )
    subparsers = parser.add_subparsers(dest='command')

    p_inspect = subparsers.add_parser('inspect', help='Print a model summary')
    p_inspect.add_argument('model', help='Model file (.json)')

    p_dot = subparsers.add_parser('dot', help='Export the trellis near a timepoint as DOT')
    p_dot.add_argument('model', help='Model file (.json) with observations')
    p_dot.add_argument('--timepoint', '-t', type=int, default=0,
                       help='Timepoint to center on')
    p_dot.add_argument('--depth', '-d', type=int, default=1,
                       help='Timepoints to include on each side')
    p_dot.add_argument('-o', '--output', default=None,
                       help='Output .dot file (default: stdout)')

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == 'inspect':
        cmd_inspect(args)
    elif args.command == 'dot':
        cmd_dot(args)


if __name__ == '__main__':
    main()
