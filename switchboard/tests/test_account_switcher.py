"""
Tests for AccountSwitchOrchestrator.
"""

import asyncio

import pytest

from switchboard.src.domain.errors import (
    AccountNotFoundError,
    BusyError,
    DecodeError,
    ExecutableNotFoundError,
    KeyNotFoundError,
    ProcessControlError,
    StoreNotFoundError,
    ValidationError,
)
from switchboard.src.domain.models.results import OutcomeStatus
from switchboard.src.domain.services.account_switcher import (
    STEP_BACKUP,
    STEP_CLEAR,
    STEP_LAUNCH,
    STEP_RESTORE,
    STEP_STOP,
    AccountSwitchOrchestrator,
)
from switchboard.src.infrastructure.target.constants import (
    AGENT_STATE_KEY,
    AUTH_STATUS_KEY,
    ONBOARDING_KEY,
)
from switchboard.src.infrastructure.target.state_db import StateDatabase
from switchboard.tests.helpers import FakeProcessController, make_agent_state


@pytest.fixture
def switcher(database, process_controller, backups):
    return AccountSwitchOrchestrator(database, process_controller, backups, settle_delay=0)


def write_backup(backups, name, content):
    backups.accounts_dir.mkdir(parents=True, exist_ok=True)
    (backups.accounts_dir / f"{name}.json").write_text(content, encoding="utf-8")


class TestSwitch:

    @pytest.mark.asyncio
    async def test_switch_writes_backup_and_resets_session_keys(self, switcher, database, seed, backups):
        seed({
            AGENT_STATE_KEY: "OLD",
            AUTH_STATUS_KEY: '{"name": "old"}',
            ONBOARDING_KEY: "false",
            "unrelated": "kept",
        })
        write_backup(backups, "acct", '{"agentStateKey": "QUJD"}')

        report = await switcher.switch("acct")

        assert database.get(AGENT_STATE_KEY) == "QUJD"
        assert database.get(AUTH_STATUS_KEY) is None
        assert database.get(ONBOARDING_KEY) == "true"
        assert database.get("unrelated") == "kept"
        assert report.succeeded
        assert [o.step for o in report.outcomes] == [STEP_STOP, STEP_CLEAR, STEP_RESTORE, STEP_LAUNCH]

    @pytest.mark.asyncio
    async def test_switch_on_empty_store(self, switcher, database, backups):
        backups.save("acct", "QUJD")

        await switcher.switch("acct")

        assert database.get(AGENT_STATE_KEY) == "QUJD"
        assert database.get(ONBOARDING_KEY) == "true"

    @pytest.mark.asyncio
    async def test_summary_chains_step_messages(self, switcher, backups):
        backups.save("acct", "QUJD")

        report = await switcher.switch("acct")

        parts = report.summary.split(" -> ")
        assert parts[0].startswith("Closed Antigravity processes")
        assert parts[2] == "Restored account acct"
        assert parts[3].startswith("Antigravity started")

    @pytest.mark.asyncio
    async def test_process_not_running_is_skipped(self, database, backups):
        controller = FakeProcessController(running=False)
        switcher = AccountSwitchOrchestrator(database, controller, backups, settle_delay=0)
        backups.save("acct", "QUJD")

        report = await switcher.switch("acct")

        stop = report.outcome_for(STEP_STOP)
        assert stop.status is OutcomeStatus.SKIPPED
        assert stop.message == "Antigravity process not running"
        assert report.succeeded

    @pytest.mark.asyncio
    async def test_stop_failure_continues(self, database, backups):
        controller = FakeProcessController(terminate_error=ProcessControlError("access denied"))
        switcher = AccountSwitchOrchestrator(database, controller, backups, settle_delay=0)
        backups.save("acct", "QUJD")

        report = await switcher.switch("acct")

        assert report.outcome_for(STEP_STOP).status is OutcomeStatus.FAILED
        assert database.get(AGENT_STATE_KEY) == "QUJD"
        assert not report.succeeded

    @pytest.mark.asyncio
    async def test_launch_failure_is_reported_without_rollback(self, database, backups):
        controller = FakeProcessController(launch_error=ExecutableNotFoundError("Antigravity executable not found"))
        switcher = AccountSwitchOrchestrator(database, controller, backups, settle_delay=0)
        backups.save("acct", "QUJD")

        report = await switcher.switch("acct")

        launch = report.outcome_for(STEP_LAUNCH)
        assert launch.status is OutcomeStatus.FAILED
        assert "Start failed" in launch.message
        assert database.get(AGENT_STATE_KEY) == "QUJD"

    @pytest.mark.asyncio
    async def test_missing_backup_aborts_before_launch(self, switcher, process_controller):
        with pytest.raises(AccountNotFoundError):
            await switcher.switch("ghost@example.com")
        assert process_controller.calls == ["terminate"]

    @pytest.mark.asyncio
    async def test_malformed_backup_aborts_with_completed_steps(self, switcher, backups, process_controller):
        write_backup(backups, "acct", '{"a": 1, "b": 2}')
        with pytest.raises(DecodeError) as excinfo:
            await switcher.switch("acct")
        assert "completed:" in str(excinfo.value)
        assert process_controller.calls == ["terminate"]

    @pytest.mark.asyncio
    async def test_backup_sibling_is_deleted(self, switcher, database, backups):
        database.backup_path.write_text("stale", encoding="utf-8")
        backups.save("acct", "QUJD")

        await switcher.switch("acct")

        assert not database.backup_path.exists()

    @pytest.mark.asyncio
    async def test_missing_store_fails_clear_and_restore_but_still_launches(self, tmp_path, process_controller,
                                                                            backups):
        switcher = AccountSwitchOrchestrator(StateDatabase(tmp_path / "none.vscdb"), process_controller,
                                             backups, settle_delay=0)
        backups.save("acct", "QUJD")

        report = await switcher.switch("acct")

        assert report.outcome_for(STEP_CLEAR).status is OutcomeStatus.FAILED
        assert report.outcome_for(STEP_RESTORE).status is OutcomeStatus.FAILED
        assert report.outcome_for(STEP_LAUNCH).status is OutcomeStatus.OK

    @pytest.mark.asyncio
    async def test_concurrent_switch_is_rejected(self, database, process_controller, backups):
        switcher = AccountSwitchOrchestrator(database, process_controller, backups, settle_delay=0.2)
        backups.save("acct", "QUJD")

        first = asyncio.create_task(switcher.switch("acct"))
        await asyncio.sleep(0.05)
        with pytest.raises(BusyError):
            await switcher.switch("acct")
        await first
        assert switcher.busy is False


class TestRestore:

    @pytest.mark.asyncio
    async def test_missing_backup_does_not_touch_store(self, switcher, database, seed, process_controller):
        seed({AGENT_STATE_KEY: "LIVE", AUTH_STATUS_KEY: "auth"})

        with pytest.raises(AccountNotFoundError):
            await switcher.restore("user@example.com")

        assert database.get(AGENT_STATE_KEY) == "LIVE"
        assert database.get(AUTH_STATUS_KEY) == "auth"
        assert process_controller.calls == []

    @pytest.mark.asyncio
    async def test_restore_writes_value_without_process_control(self, switcher, database, backups,
                                                                process_controller):
        backups.save("user@example.com", "QUJD")

        report = await switcher.restore("user@example.com")

        assert report.succeeded
        assert database.get(AGENT_STATE_KEY) == "QUJD"
        assert process_controller.calls == []


class TestClearSession:

    @pytest.mark.asyncio
    async def test_clears_keys_and_sets_onboarding(self, switcher, database, seed):
        seed({AGENT_STATE_KEY: "LIVE", AUTH_STATUS_KEY: "auth"})

        outcome = await switcher.clear_session()

        assert outcome.status is OutcomeStatus.OK
        assert "2 keys removed" in outcome.message
        assert database.get(AGENT_STATE_KEY) is None
        assert database.get(ONBOARDING_KEY) == "true"

    @pytest.mark.asyncio
    async def test_missing_store_raises(self, tmp_path, process_controller, backups):
        switcher = AccountSwitchOrchestrator(StateDatabase(tmp_path / "none.vscdb"), process_controller, backups)
        with pytest.raises(StoreNotFoundError):
            await switcher.clear_session()


class TestBackupAndSignIn:

    @pytest.mark.asyncio
    async def test_backup_current_names_file_by_email(self, switcher, seed, backups):
        value = make_agent_state(email="dev@example.com")
        seed({AGENT_STATE_KEY: value})

        account_id = await switcher.backup_current()

        assert account_id == "dev@example.com"
        assert backups.load("dev@example.com").agent_state == value

    @pytest.mark.asyncio
    async def test_backup_without_session_raises(self, switcher):
        with pytest.raises(KeyNotFoundError):
            await switcher.backup_current()

    @pytest.mark.asyncio
    async def test_backup_of_undecodable_value_raises(self, switcher, seed):
        seed({AGENT_STATE_KEY: "not-base64!"})
        with pytest.raises(DecodeError):
            await switcher.backup_current()

    @pytest.mark.asyncio
    async def test_current_account(self, switcher, seed):
        assert await switcher.current_account() is None
        seed({AGENT_STATE_KEY: make_agent_state(email="me@example.com", plan="pro")})
        session = await switcher.current_account()
        assert session.email == "me@example.com"
        assert session.plan_slug == "pro"

    @pytest.mark.asyncio
    async def test_sign_in_new_backs_up_clears_and_relaunches(self, switcher, database, seed, backups,
                                                              process_controller):
        seed({AGENT_STATE_KEY: make_agent_state(email="me@example.com"), AUTH_STATUS_KEY: "auth"})

        report = await switcher.sign_in_new()

        assert report.outcome_for(STEP_BACKUP).message == "Backup completed: me@example.com"
        assert backups.exists("me@example.com")
        assert database.get(AGENT_STATE_KEY) is None
        assert database.get(ONBOARDING_KEY) == "true"
        assert process_controller.calls == ["terminate", "launch"]

    @pytest.mark.asyncio
    async def test_sign_in_new_without_session_skips_backup(self, switcher):
        report = await switcher.sign_in_new()

        backup = report.outcome_for(STEP_BACKUP)
        assert backup.status is OutcomeStatus.SKIPPED
        assert backup.message == "No login user detected (skipping backup)"
        assert report.succeeded

    @pytest.mark.asyncio
    async def test_email_unusable_as_file_name(self, switcher, database, seed, backups, process_controller):
        seed({AGENT_STATE_KEY: make_agent_state(email="a/b@example.com"), AUTH_STATUS_KEY: "auth"})

        with pytest.raises(ValidationError):
            await switcher.backup_current()

        report = await switcher.sign_in_new()

        backup = report.outcome_for(STEP_BACKUP)
        assert backup.status is OutcomeStatus.NON_FATAL
        assert backup.message.startswith("Backup failed:")
        assert database.get(AGENT_STATE_KEY) is None
        assert process_controller.calls == ["terminate", "launch"]
