"""Tests for AutomationLogger: step pairs, error capture, session close and recovery."""

import pytest

from campaign_automation.audit.logger import AutomationLogger
from campaign_automation.audit.models import SessionUpdate
from campaign_automation.audit.store import AutomationLogStore
from campaign_automation.domain.errors import AlreadyRunningError, StaleSessionError
from campaign_automation.domain.types import AutomationMode, SessionStatus, StepStatus, StepType


class TestSteps:
    """Tests for opening and closing steps."""

    def test_started_and_closed_records_share_step_id(self, automation_logger: AutomationLogger):
        session = automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        opened = automation_logger.log_step_started(
            session.session_id, StepType.CREATOR_SEARCH, "Search creators"
        )
        closed = automation_logger.log_step_closed(
            session.session_id, opened, StepStatus.COMPLETED, 42, details={"creators_found": 3}
        )
        assert closed.step_id == opened.step_id
        assert closed.started_at == opened.started_at
        assert closed.completed_at is not None

        steps = automation_logger.get_session(session.session_id).step_log
        assert [s.status for s in steps] == [StepStatus.STARTED, StepStatus.COMPLETED]
        assert steps[0].duration_ms is None
        assert steps[1].duration_ms == 42

    def test_failed_step_keeps_error_message(self, automation_logger: AutomationLogger):
        session = automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        opened = automation_logger.log_step_started(
            session.session_id, StepType.INITIALIZATION, "Load campaign"
        )
        automation_logger.log_step_closed(
            session.session_id, opened, StepStatus.FAILED, 5, error_message="not_found: gone"
        )
        last = automation_logger.get_session(session.session_id).step_log[-1]
        assert last.error_message == "not_found: gone"


class TestErrors:
    """Tests for error capture."""

    def test_log_error_without_exception_has_no_trace(self, automation_logger: AutomationLogger):
        session = automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        record = automation_logger.log_error(
            session.session_id, "unavailable", "webhook down", step_name="OUTREACH"
        )
        assert record.stack_trace is None
        assert automation_logger.get_session(session.session_id).error_log == [record]

    def test_log_error_captures_stack_trace(self, automation_logger: AutomationLogger):
        session = automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        try:
            raise RuntimeError("kaboom")
        except RuntimeError as exc:
            record = automation_logger.log_error(
                session.session_id, "RuntimeError", str(exc), exc=exc
            )
        assert record.stack_trace is not None
        assert "RuntimeError: kaboom" in record.stack_trace


class TestSessions:
    """Tests for session lifecycle."""

    def test_start_session_twice_raises(self, automation_logger: AutomationLogger):
        automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        with pytest.raises(AlreadyRunningError):
            automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)

    def test_complete_session_persists_metrics_and_summary(
        self, automation_logger: AutomationLogger
    ):
        session = automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        automation_logger.update_session(
            session.session_id,
            SessionUpdate(
                completed_steps=5, successful_communications=1, failed_communications=1
            ),
        )
        report = automation_logger.complete_session(session.session_id, SessionStatus.COMPLETED)

        assert report.status == SessionStatus.COMPLETED
        assert report.metrics.success_rate == 100.0
        assert report.metrics.communication_efficiency == 0.5
        assert report.current_step == "Automation completed"

        stored = automation_logger.get_session(session.session_id)
        assert stored.completed_at is not None
        assert stored.performance_metrics["success_rate"] == 100.0
        assert stored.summary_report["status"] == "COMPLETED"

    def test_concurrent_writer_is_detected(
        self, automation_logger: AutomationLogger, log_store: AutomationLogStore
    ):
        session = automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        # A second writer bypassing this logger
        log_store.update_session(session.session_id, SessionUpdate(creators_found=9))
        with pytest.raises(StaleSessionError):
            automation_logger.update_session(session.session_id, SessionUpdate(creators_found=1))

    def test_get_report_none_without_sessions(self, automation_logger: AutomationLogger):
        assert automation_logger.get_report("cmp_1") is None

    def test_get_history(self, automation_logger: AutomationLogger):
        first = automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        automation_logger.complete_session(first.session_id, SessionStatus.CANCELLED)
        second = automation_logger.start_session("cmp_1", "user_1", AutomationMode.MANUAL)
        history = automation_logger.get_history("cmp_1")
        assert [s.session_id for s in history] == [second.session_id, first.session_id]


class TestRecovery:
    """Tests for recovery of sessions abandoned by a previous process."""

    def test_running_sessions_are_failed_with_resume_point(self, log_store: AutomationLogStore):
        # Simulate the previous process
        previous = AutomationLogger(log_store)
        session = previous.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        opened = previous.log_step_started(
            session.session_id, StepType.INITIALIZATION, "Load campaign"
        )
        previous.log_step_closed(session.session_id, opened, StepStatus.COMPLETED, 3)
        previous.log_step_started(session.session_id, StepType.CREATOR_SEARCH, "Search creators")

        restarted = AutomationLogger(log_store)
        recovered = restarted.recover_abandoned_sessions()

        assert recovered == [session.session_id]
        stored = restarted.get_session(session.session_id)
        assert stored.status == SessionStatus.FAILED
        assert len(stored.error_log) == 1
        error = stored.error_log[0]
        assert error.error_type == "SessionAbandoned"
        assert error.context is not None
        assert error.context["last_closed_step"] == "Load campaign"

    def test_recovery_without_running_sessions_is_noop(self, automation_logger: AutomationLogger):
        session = automation_logger.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        automation_logger.complete_session(session.session_id, SessionStatus.COMPLETED)
        assert automation_logger.recover_abandoned_sessions() == []

    def test_campaign_can_run_again_after_recovery(self, log_store: AutomationLogStore):
        AutomationLogger(log_store).start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        restarted = AutomationLogger(log_store)
        restarted.recover_abandoned_sessions()
        session = restarted.start_session("cmp_1", "user_1", AutomationMode.AUTOMATIC)
        assert session.status == SessionStatus.RUNNING
