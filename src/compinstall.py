"""compinstall - component installation and update tool.

Installs every configured component (or a single one given on the command
line) below the configured install directory and exits with an ExitCodes
value describing the first failure.
"""

import logging
import os
import sys

from args import parse_args
from cli_config import load_install_config
from common.errors import (
    ConfigError,
    DescriptorError,
    FormatMismatch,
    InstallError,
    InstallIOError,
    ResolutionFailure,
    UnsupportedRepository,
)
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from installation.reconciler import ComponentReconciler, InstallComponent, reconcile_all
from versioning.parser import parse_coordinate

logger = logging.getLogger(__name__)


def exit_code_for(exc: Exception) -> ExitCodes:
    """Map an installation error to the process exit code."""
    if isinstance(exc, (ConfigError, UnsupportedRepository)):
        return ExitCodes.CONFIG_ERROR
    if isinstance(exc, ResolutionFailure):
        return ExitCodes.RESOLUTION_ERROR
    if isinstance(exc, InstallIOError):
        return ExitCodes.FILE_ERROR if exc.status_code is None and not exc.path.startswith("http") \
            else ExitCodes.CONNECTION_ERROR
    if isinstance(exc, (FormatMismatch, DescriptorError)):
        return ExitCodes.FILE_ERROR
    return ExitCodes.INSTALL_ERROR


def _setup_logging(args) -> None:
    """Configure logging based on CLI arguments."""
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.LOG_LEVEL_ENV] = str(args.LOG_LEVEL).upper()
    configure_logging()
    level_value = getattr(logging, str(args.LOG_LEVEL).upper(), logging.INFO)
    logging.getLogger().setLevel(level_value)

    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def run(args) -> ExitCodes:
    """Run the installation for parsed arguments and return the exit code."""
    try:
        config = load_install_config(args.CONFIG)
        components = config.components
        if args.SINGLE:
            try:
                components = [InstallComponent(parse_coordinate(args.SINGLE), args.PATH or "")]
            except ValueError as exc:
                raise ConfigError(str(exc)) from exc
    except InstallError as exc:
        logger.error("%s", exc)
        return exit_code_for(exc)

    if not components:
        logger.warning("No components configured.")
        return ExitCodes.SUCCESS

    environment = config.install_environment()
    logger.info("Installing %d component(s) into %s (os=%s, environment=%s)",
                len(components), config.install_dir, environment.os_type.value,
                ",".join(sorted(environment.types)) or "-")

    reconciler = ComponentReconciler(
        config.install_dir,
        config.admin_dir,
        config.repositories,
        environment,
        backup_dir=config.backup_dir,
        placeholders=config.placeholders,
        transport=config.transport,
    )

    code = ExitCodes.SUCCESS
    for component, outcome in reconcile_all(reconciler, components, args.UPDATE):
        if isinstance(outcome, InstallError):
            if code == ExitCodes.SUCCESS:
                code = exit_code_for(outcome)
            continue
        logger.info("%s %s: %s", "Updated" if outcome.is_update else "Installed",
                    component.dependency.with_version(outcome.version),
                    "changed" if outcome.did_work else "up to date")
    return code


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    _setup_logging(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    code = run(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI finished",
            extra=extra_context(
                event="function_exit",
                component="cli",
                action="main",
                outcome="success" if code == ExitCodes.SUCCESS else code.name.lower()
            )
        )
    sys.exit(code.value)


if __name__ == "__main__":
    main()
