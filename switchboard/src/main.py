"""
Main Entry Point for Switchboard.

Without a subcommand the PyQt6 GUI starts. Subcommands run a single
operation from the terminal and exit.
"""

import argparse
import asyncio
import getpass
import json
import logging
import os
import signal
import sys
from typing import List, Optional

from switchboard.__version__ import __version__
from switchboard.src.domain.errors import SwitchboardError
from switchboard.src.utils.config_paths import HOME_ENV_VAR

logger = logging.getLogger("switchboard.main")


class SwitchboardApplication:
    """
    Main application class that manages the Qt application lifecycle.
    """

    def __init__(self):
        self.app = None
        self.coordinator = None

    def setup_qt_application(self):
        from PyQt6.QtWidgets import QApplication

        app = QApplication(sys.argv)
        app.setApplicationName("Switchboard")
        app.setApplicationVersion(__version__)
        app.setOrganizationName("Switchboard")
        app.setQuitOnLastWindowClosed(False)  # The tray keeps the app alive
        logger.info("Qt application configured")
        return app

    def _setup_signal_handlers(self):
        """Quit the Qt loop on SIGINT/SIGTERM."""
        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating graceful shutdown...")
            if self.coordinator:
                self.coordinator.quit()
            elif self.app:
                self.app.quit()

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        # Let the Python interpreter run periodically so handlers fire
        from PyQt6.QtCore import QTimer
        self._signal_timer = QTimer()
        self._signal_timer.timeout.connect(lambda: None)
        self._signal_timer.start(500)

    def run(self) -> int:
        """
        Run the Switchboard GUI.

        Returns:
            Exit code (0 for success)
        """
        from switchboard.src.application.app_coordinator import AppCoordinator
        from switchboard.src.infrastructure.background_loop import stop_background_loop

        _original_excepthook = sys.excepthook

        def _excepthook(exc_type, exc_value, exc_tb):
            logger.critical(
                "Unhandled exception (caught by excepthook)",
                exc_info=(exc_type, exc_value, exc_tb),
            )
            _original_excepthook(exc_type, exc_value, exc_tb)

        sys.excepthook = _excepthook

        try:
            self.app = self.setup_qt_application()
            self._setup_signal_handlers()

            self.coordinator = AppCoordinator()
            if not self.coordinator.initialize():
                logger.error("Failed to initialize application")
                return 1

            exit_code = self.app.exec()
            logger.info(f"Application exited with code: {exit_code}")
            return exit_code
        except KeyboardInterrupt:
            logger.info("Application interrupted by user")
            return 0
        finally:
            stop_background_loop()


# --- CLI -----------------------------------------------------------------------------

def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _build_commands():
    from switchboard.src.application.commands import AgentCommands, AgentServices
    return AgentCommands(AgentServices.create())


def _read_password(args) -> str:
    return args.password if args.password is not None else getpass.getpass("Password: ")


def _cmd_backup(commands, args) -> int:
    print(asyncio.run(commands.backup_current()))
    return 0


def _cmd_list(commands, args) -> int:
    accounts = commands.list_accounts()
    if args.json:
        _print_json([
            {
                'account': summary.account_id,
                'name': summary.session.name,
                'plan': summary.session.plan_slug,
                'modified': summary.modified_at.isoformat(),
            }
            for summary in accounts
        ])
    elif not accounts:
        print("No saved accounts")
    else:
        for summary in accounts:
            plan = f" [{summary.session.plan_slug}]" if summary.session.plan_slug else ""
            print(f"{summary.account_id}{plan}  {summary.modified_at:%Y-%m-%d %H:%M}")
    return 0


def _print_report(report) -> int:
    print(report.summary)
    return 0 if report.succeeded else 2


def _cmd_switch(commands, args) -> int:
    return _print_report(asyncio.run(commands.switch(args.account)))


def _cmd_restore(commands, args) -> int:
    return _print_report(asyncio.run(commands.restore(args.account)))


def _cmd_sign_in_new(commands, args) -> int:
    return _print_report(asyncio.run(commands.sign_in_new()))


def _cmd_clear(commands, args) -> int:
    outcome = asyncio.run(commands.clear_session())
    print(f"Logout successful: {outcome.message}")
    return 0


def _cmd_current(commands, args) -> int:
    session = asyncio.run(commands.current_account())
    if session is None:
        print("Not logged in")
        return 1
    _print_json({'email': session.email, 'name': session.name, 'plan': session.plan_slug})
    return 0


def _cmd_delete(commands, args) -> int:
    if args.all:
        print(f"Deleted {commands.clear_all_backups()} backups")
        return 0
    if not args.account:
        print("Specify an account or --all", file=sys.stderr)
        return 1
    commands.delete_backup(args.account)
    print(f"Deleted backup {args.account}")
    return 0


def _cmd_export(commands, args) -> int:
    bundle = commands.export_accounts(_read_password(args))
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(bundle)
        print(f"Exported accounts to {args.output}")
    else:
        print(bundle)
    return 0


def _cmd_import(commands, args) -> int:
    with open(args.input, 'r', encoding='utf-8') as f:
        bundle = f.read()
    result = commands.import_accounts(bundle, _read_password(args))
    print(f"Imported {result.restored_count} accounts")
    for filename, error in result.failed:
        print(f"  failed: {filename}: {error}", file=sys.stderr)
    return 0 if not result.failed else 2


def _cmd_monitor(commands, args) -> int:
    monitor = commands.services.monitor
    if args.interval:
        monitor.interval = args.interval

    def print_event(event):
        print(f"{event.new_snapshot.taken_at:%H:%M:%S}  {event.diff.summary}")
        for change in event.diff.changed_fields:
            print(f"    {change}")
        sys.stdout.flush()

    async def run_monitor():
        monitor.add_listener(print_event)
        await commands.start_monitor()
        print(f"Monitoring {commands.services.database.db_path} (Ctrl+C to stop)")
        try:
            while monitor.is_running:
                await asyncio.sleep(0.5)
        finally:
            await commands.stop_monitor()

    try:
        asyncio.run(run_monitor())
    except KeyboardInterrupt:
        pass
    return 0


def _cmd_settings(commands, args) -> int:
    if args.action == 'set':
        value = args.value.lower() in ('1', 'true', 'yes', 'on')
        result = commands.update_settings(**{args.name: value})
        if result.corrected:
            print("Silent start was disabled because the system tray is off")
    _print_json(commands.get_settings().to_dict())
    return 0


def _cmd_info(commands, args) -> int:
    info = commands.platform_info()
    info['target_running'] = commands.is_target_running()
    _print_json(info)
    return 0


def _cmd_set_executable(commands, args) -> int:
    commands.save_executable_path(args.path)
    print(f"Saved Antigravity executable path: {args.path}")
    return 0


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="switchboard",
        description="Switchboard - Antigravity account switcher",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-dir", type=str, help="Custom directory for log files")
    parser.add_argument("--data-dir", type=str, help=f"Data directory (overrides {HOME_ENV_VAR})")
    parser.add_argument("--version", action="version", version=f"Switchboard {__version__}")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("gui", help="Start the desktop application (default)")

    p = sub.add_parser("backup", help="Back up the logged-in account")
    p.set_defaults(handler=_cmd_backup)

    p = sub.add_parser("list", help="List saved accounts")
    p.add_argument("--json", action="store_true")
    p.set_defaults(handler=_cmd_list)

    p = sub.add_parser("current", help="Show the logged-in account")
    p.set_defaults(handler=_cmd_current)

    for name, handler, help_text in (
        ("switch", _cmd_switch, "Stop Antigravity, switch to a saved account and restart it"),
        ("restore", _cmd_restore, "Write a saved account into the state database"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("account", help="Account e-mail (backup file name)")
        p.set_defaults(handler=handler)

    p = sub.add_parser("clear", help="Log Antigravity out")
    p.set_defaults(handler=_cmd_clear)

    p = sub.add_parser("sign-in-new", help="Back up, log out and restart Antigravity")
    p.set_defaults(handler=_cmd_sign_in_new)

    p = sub.add_parser("delete", help="Delete a saved account")
    p.add_argument("account", nargs="?")
    p.add_argument("--all", action="store_true", help="Delete every saved account")
    p.set_defaults(handler=_cmd_delete)

    p = sub.add_parser("export", help="Export saved accounts as an encrypted bundle")
    p.add_argument("-o", "--output")
    p.add_argument("--password")
    p.set_defaults(handler=_cmd_export)

    p = sub.add_parser("import", help="Import an encrypted bundle")
    p.add_argument("input")
    p.add_argument("--password")
    p.set_defaults(handler=_cmd_import)

    p = sub.add_parser("monitor", help="Print state database changes")
    p.add_argument("--interval", type=float)
    p.set_defaults(handler=_cmd_monitor)

    p = sub.add_parser("settings", help="Show or change settings")
    p.add_argument("action", choices=["get", "set"], nargs="?", default="get")
    p.add_argument("name", nargs="?",
                   choices=["system_tray_enabled", "silent_start_enabled", "debug_mode", "private_mode"])
    p.add_argument("value", nargs="?")
    p.set_defaults(handler=_cmd_settings)

    p = sub.add_parser("info", help="Show platform and installation details")
    p.set_defaults(handler=_cmd_info)

    p = sub.add_parser("set-executable", help="Save a custom Antigravity executable path")
    p.add_argument("path")
    p.set_defaults(handler=_cmd_set_executable)

    args = parser.parse_args(argv)
    if getattr(args, 'action', None) == 'set' and (not args.name or args.value is None):
        parser.error("settings set requires a name and a value")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)

    if args.data_dir:
        os.environ[HOME_ENV_VAR] = os.path.abspath(args.data_dir)

    from switchboard.src.infrastructure.logging.logging_config import setup_logging
    from switchboard.src.infrastructure.storage.settings_manager import get_settings_manager

    debug_mode = args.debug or get_settings_manager().get().debug_mode
    setup_logging(debug=debug_mode, log_dir=args.log_dir)
    logger.info(f"Switchboard {__version__} starting (Python {sys.version.split()[0]}, {sys.platform})")

    handler = getattr(args, 'handler', None)
    if handler is None:
        return SwitchboardApplication().run()

    try:
        return handler(_build_commands(), args)
    except SwitchboardError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
