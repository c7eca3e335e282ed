"""Argument parsing functionality for compinstall."""

import argparse


def build_parser():
    """Builds the argument parser of the program."""
    parser = argparse.ArgumentParser(
        prog="compinstall",
        description=(
            "compinstall - installs and updates components from Maven and Ivy repositories"
        ),
        add_help=True,
    )

    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to the install configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str,
                        required=True)
    parser.add_argument("-p", "--package",
                        dest="SINGLE",
                        help="Install a single component given as group:module[:version]",
                        action="store",
                        type=str)
    parser.add_argument("--path",
                        dest="PATH",
                        help="Install path of the single component below installDir",
                        action="store",
                        type=str,
                        default="")

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument("--update",
                            dest="UPDATE",
                            help="Treat every component as an update of a previous installation",
                            action="store_const",
                            const=True)
    mode_group.add_argument("--fresh",
                            dest="UPDATE",
                            help="Treat every component as a fresh installation",
                            action="store_const",
                            const=False)

    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
