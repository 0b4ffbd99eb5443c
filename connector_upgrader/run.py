"""
Connector Package Upgrade - command line entry point.

Upgrades the installed connector package of one CRM instance:

    connector-upgrade -z connector-2.2.zip -l upgrade.log -s /var/www/crm -u admin

The terminal only ever shows one result line: ``Success!`` or the error that
stopped the run. Every step is appended to the log file given with ``-l``.
"""

import argparse
import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from loguru import logger

from connector_upgrader import __version__
from connector_upgrader.auth.admin_gate import AdminAuthGate
from connector_upgrader.core.config import Settings, load_settings
from connector_upgrader.core.constants import EXIT_SUCCESS, EXIT_USAGE, SUCCESS_MESSAGE
from connector_upgrader.core.enums import DeploymentMode
from connector_upgrader.core.exceptions import (
    PreconditionError,
    UpgradeError,
    UsageError,
)
from connector_upgrader.data_access.instance_layout import InstanceLayout
from connector_upgrader.data_access.local_instance import LocalInstance
from connector_upgrader.data_access.rest_gateway import RestUploadGateway
from connector_upgrader.progress.run_log import RunLog, configure_console
from connector_upgrader.upgrade.package_orchestrator import PackageOrchestrator

BackendFactory = Callable[[Settings, InstanceLayout], LocalInstance]

USAGE_EXAMPLE = """\
Example:
    connector-upgrade -z path/to/Connector-2.2.zip -l path/to/connector_upgrade.log \\
        -s path/to/crm-instance/ -u admin
"""


# =============================================================================
# SECTION 1: ARGUMENT PARSING
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    # Required options are checked by hand so a missing one reports the same
    # message whichever it is.
    parser = argparse.ArgumentParser(
        prog="connector-upgrade",
        description=f"Connector package upgrader v{__version__}",
        epilog=USAGE_EXAMPLE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-z", dest="package", default="", help="New connector package zip")
    parser.add_argument("-l", dest="log_file", default="", help="Log file (appended to)")
    parser.add_argument("-s", dest="instance", default="", help="CRM instance directory")
    parser.add_argument("-u", dest="user", default="", help="Administrator user name")
    parser.add_argument(
        "-t", dest="template", default="", help="Template installation (shadowed mode)"
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in DeploymentMode],
        default=None,
        help="Instance deployment mode (default: direct)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML settings file. An upload_url endpoint must stage into the "
        "instance history under <instance>/db",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show diagnostics on stderr"
    )
    return parser


def check_required(args: argparse.Namespace, mode: DeploymentMode) -> None:
    """
    Raises:
        UsageError: If a required option is missing or blank
    """
    for name in ("package", "log_file", "instance", "user", "template"):
        setattr(args, name, (getattr(args, name) or "").strip())

    missing = not (args.package and args.log_file and args.instance and args.user)
    if missing or (mode == DeploymentMode.SHADOWED and not args.template):
        raise UsageError("Missing required parameter(s).")


def check_preconditions(args: argparse.Namespace, layout: InstanceLayout) -> None:
    """
    Raises:
        PreconditionError: If the package, instance or template is missing
    """
    if not Path(args.package).is_file():
        raise PreconditionError(f"Connector package file {args.package} does not exist.")
    layout.validate()


# =============================================================================
# SECTION 2: BACKEND WIRING
# =============================================================================


def build_backend(settings: Settings, layout: InstanceLayout) -> LocalInstance:
    """Local file backend, with uploads posted over HTTP when a URL is set."""
    backend = LocalInstance(layout, settings)
    if settings.upload_url:
        logger.info(
            f"Uploading packages through {settings.upload_url}; "
            f"staged records are read from {backend.history.path}"
        )
        backend.upload_gateway = RestUploadGateway(
            settings.upload_url,
            token=settings.upload_token,
            timeout=settings.upload_timeout,
        )
    return backend


def prepare(args: argparse.Namespace) -> Tuple[Settings, InstanceLayout]:
    """Validate the command line and build settings and layout."""
    settings = load_settings(
        Path(args.config) if args.config else None, deployment_mode=args.mode
    )
    check_required(args, settings.deployment_mode)
    layout = InstanceLayout(
        args.instance,
        mode=settings.deployment_mode,
        template_path=args.template or None,
    )
    check_preconditions(args, layout)
    return settings, layout


# =============================================================================
# SECTION 3: MAIN EXECUTION FUNCTION
# =============================================================================


def run_upgrade(
    args: argparse.Namespace,
    settings: Settings,
    layout: InstanceLayout,
    run_log: RunLog,
    backend_factory: BackendFactory,
) -> None:
    backend = backend_factory(settings, layout)
    try:
        admin = AdminAuthGate(backend.users).require(args.user)
        orchestrator = PackageOrchestrator(
            settings=settings,
            layout=layout,
            records=backend.history,
            package_manager=backend.package_manager,
            upload_gateway=backend.upload_gateway,
            provider_config=backend.provider_config,
            run_log=run_log,
            admin=admin,
        )
        orchestrator.upgrade(Path(args.package).resolve(), settings.target_key)
        for warning in orchestrator.result.warnings:
            logger.warning(f"⚠️ {warning}")
    finally:
        if isinstance(backend.upload_gateway, RestUploadGateway):
            backend.upload_gateway.close()


def main(
    argv: Optional[List[str]] = None,
    backend_factory: Optional[BackendFactory] = None,
) -> int:
    """
    Run one upgrade from the command line.

    Args:
        argv: Arguments without the program name; defaults to sys.argv[1:]
        backend_factory: Builds the collaborators for an instance

    Returns:
        Process exit code: 0 on success, 1 on failure, 2 on usage errors
    """
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()

    if not argv:
        print(parser.format_help())
        return EXIT_USAGE

    args = parser.parse_args(argv)
    configure_console(args.verbose)

    try:
        settings, layout = prepare(args)
        run_log = RunLog(args.log_file).open()
    except UpgradeError as e:
        print(e.message)
        return e.exit_code

    with run_log:
        try:
            run_upgrade(args, settings, layout, run_log, backend_factory or build_backend)
        except UpgradeError as e:
            run_log.error(e.message)
            print(e.message)
            return e.exit_code
        except Exception as e:
            logger.exception("Upgrade failed")
            error = UpgradeError(f"Failed to upgrade connector package: {e}")
            run_log.error(error.message)
            print(error.message)
            return error.exit_code

    print(SUCCESS_MESSAGE)
    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
