"""
Tests for the AgentCommands facade.
"""

import os
import time

import pytest

from switchboard.src.application.commands import AgentCommands, AgentServices, Timings
from switchboard.src.domain.errors import AccountNotFoundError, DecodeError
from switchboard.src.domain.services.account_switcher import AccountSwitchOrchestrator
from switchboard.src.domain.services.state_monitor import StateChangeMonitor
from switchboard.src.infrastructure.storage.settings_manager import SettingsManager
from switchboard.src.infrastructure.storage.window_state_store import WindowStateStore
from switchboard.src.infrastructure.target.constants import AGENT_STATE_KEY
from switchboard.tests.helpers import make_agent_state


@pytest.fixture
def commands(tmp_path, database, backups, process_controller):
    timings = Timings(monitor_interval=0.05, settle_delay=0, debounce=0.05, restore_grace=0)
    services = AgentServices(
        settings=SettingsManager(tmp_path / "configs" / "app_settings.json"),
        window_store=WindowStateStore(tmp_path / "configs" / "window_state.json"),
        database=database,
        process_controller=process_controller,
        backups=backups,
        monitor=StateChangeMonitor(database, interval=timings.monitor_interval),
        switcher=AccountSwitchOrchestrator(database, process_controller, backups,
                                           settle_delay=timings.settle_delay),
        timings=timings,
    )
    return AgentCommands(services)


class TestAccounts:

    def test_list_decodes_sessions_newest_first(self, commands, backups):
        older = backups.save("old@example.com", make_agent_state(email="old@example.com", plan="free"))
        backups.save("new@example.com", make_agent_state(email="new@example.com", plan="pro"))
        past = time.time() - 3600
        os.utime(older, (past, past))

        accounts = commands.list_accounts()

        assert [a.email for a in accounts] == ["new@example.com", "old@example.com"]
        assert accounts[0].session.plan_slug == "pro"

    def test_undecodable_backup_listed_by_file_name(self, commands, backups):
        backups.save("legacy", "QUJD")

        [account] = commands.list_accounts()

        assert account.account_id == "legacy"
        assert account.email == "legacy"

    @pytest.mark.asyncio
    async def test_backup_current_message_names_file(self, commands, seed, backups):
        seed({AGENT_STATE_KEY: make_agent_state(email="me@example.com")})

        message = await commands.backup_current()

        assert message == f"Saved me@example.com to {backups.path_for('me@example.com')}"

    def test_delete_missing_backup_propagates(self, commands):
        with pytest.raises(AccountNotFoundError):
            commands.delete_backup("nobody@example.com")

    def test_export_then_import_into_empty_directory(self, commands, backups):
        value = make_agent_state(email="me@example.com")
        backups.save("me@example.com", value)
        bundle = commands.export_accounts("correct horse")
        assert commands.clear_all_backups() == 1

        result = commands.import_accounts(bundle, "correct horse")

        assert result.restored_count == 1
        assert result.failed == []
        assert backups.load("me@example.com").agent_state == value

    def test_import_with_wrong_password_fails(self, commands, backups):
        backups.save("me@example.com", "QUJD")
        bundle = commands.export_accounts("right")

        with pytest.raises(DecodeError):
            commands.import_accounts(bundle, "wrong")

    def test_decode_session(self, commands):
        session = commands.decode_session(make_agent_state(email="x@example.com", name="X"))
        assert session.email == "x@example.com"
        assert session.name == "X"


class TestMonitorAndSettings:

    @pytest.mark.asyncio
    async def test_monitor_start_stop_and_status(self, commands):
        assert await commands.start_monitor() is True
        assert commands.monitor_status()["running"] is True

        assert await commands.stop_monitor() is True
        await commands.services.monitor.wait_stopped(timeout=1.0)
        assert commands.monitor_status()["running"] is False

    def test_update_settings_goes_through_manager(self, commands):
        result = commands.update_settings(system_tray_enabled=True)
        assert result.settings.system_tray_enabled is True
        assert commands.get_settings().system_tray_enabled is True

    def test_platform_info_names_state_database(self, commands, database):
        info = commands.platform_info()
        assert info["state_db"] == str(database.db_path)
