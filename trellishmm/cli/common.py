"""Shared argparse argument factories for trellishmm CLI tools.

Each function adds a group of related arguments to an ArgumentParser.
Default values can be overridden per-script where needed.
"""

import argparse


def add_method_args(parser: argparse.ArgumentParser,
                    default: str = 'baum-welch') -> None:
    """Add --method argument."""
    parser.add_argument(
        '--method', '-m',
        choices=['viterbi', 'baum-welch'],
        default=default,
        help=f"Training algorithm (default: {default})"
    )


def add_iteration_args(parser: argparse.ArgumentParser,
                       max_iter: int = 100) -> None:
    """Add --max-iter argument."""
    parser.add_argument(
        '--max-iter', '-n', type=int, default=max_iter,
        help=f"Maximum training iterations (default: {max_iter})"
    )


def add_output_args(parser: argparse.ArgumentParser,
                    required: bool = True,
                    help_text: str = "Output model file (.json)") -> None:
    """Add -o/--output argument."""
    parser.add_argument(
        '-o', '--output', required=required,
        help=help_text
    )


def add_verbose_args(parser: argparse.ArgumentParser) -> None:
    """Add --verbose flag."""
    parser.add_argument(
        '-v', '--verbose', action='store_true',
        help="Verbose output"
    )


def add_version_args(parser: argparse.ArgumentParser) -> None:
    """Add --version flag."""
    from trellishmm import __version__
    parser.add_argument(
        '--version', action='version',
        version=f'%(prog)s {__version__}'
    )
