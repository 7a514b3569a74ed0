"""Caller-facing automation service.

Validates and starts sessions, keeps the live controller of each session
started by this process, and answers report and history queries from the
audit log.  The at-most-one RUNNING session per campaign rule is enforced by
the log store when the session is created, so a rejected start leaves no
session and no log entries behind.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from campaign_automation.audit.logger import AutomationLogger
from campaign_automation.audit.models import AutomationReport, AutomationSession
from campaign_automation.capabilities.registry import CapabilityRegistry
from campaign_automation.config import Settings, validate_run_config
from campaign_automation.domain.errors import SessionNotFoundError
from campaign_automation.domain.models import CampaignState, CreatorContactPreference
from campaign_automation.domain.types import AutomationMode
from campaign_automation.pipeline.controller import PipelineController
from campaign_automation.pipeline.observer import StateObserver
from campaign_automation.planning.strategy import OutreachStrategy, TemplateStrategy

logger = structlog.get_logger()


class AutomationService:
    """Start, steer and inspect campaign automation runs.

    Args:
        settings: Application settings (run validation, delays, retry policy).
        registry: Capability registry shared by all runs.
        automation_logger: Audit logger shared by all runs.
        strategy: Planning strategy; a :class:`TemplateStrategy` priced at
            ``settings.default_cpm`` when omitted.
        sleep: Awaitable sleep passed to each controller; injectable for tests.
    """

    def __init__(
        self,
        settings: Settings,
        registry: CapabilityRegistry,
        automation_logger: AutomationLogger,
        strategy: OutreachStrategy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._log = automation_logger
        self._strategy = strategy or TemplateStrategy(settings.default_cpm)
        self._sleep = sleep
        self._controllers: dict[str, PipelineController] = {}

    @property
    def registry(self) -> CapabilityRegistry:
        """Return the capability registry."""
        return self._registry

    async def start_automation(
        self,
        campaign_id: str,
        user_id: str,
        mode: AutomationMode = AutomationMode.AUTOMATIC,
        preferences: list[CreatorContactPreference] | None = None,
        observer: StateObserver | None = None,
        session_id: str | None = None,
    ) -> str:
        """Create a session and start its run in the background.

        Args:
            campaign_id: Campaign to automate.
            user_id: Operator starting the run.
            mode: AUTOMATIC runs straight through; MANUAL halts after creator search.
            preferences: Contact preferences known up front.
            observer: Optional callback receiving live state snapshots.
            session_id: Caller-chosen session id; generated when omitted.

        Returns:
            The new session id.

        Raises:
            ConfigurationError: If identifiers or outreach configuration are missing.
            AlreadyRunningError: If the campaign already has a RUNNING session.
        """
        validate_run_config(self._settings, campaign_id, user_id)
        session = self._log.start_session(campaign_id, user_id, mode, session_id=session_id)

        controller = PipelineController(
            session_id=session.session_id,
            campaign_id=campaign_id,
            mode=mode,
            registry=self._registry,
            automation_logger=self._log,
            strategy=self._strategy,
            preferences=preferences,
            observer=observer,
            dispatch_delay=self._settings.dispatch_delay_seconds,
            dispatch_max_per_window=self._settings.dispatch_max_per_window,
            dispatch_window_seconds=self._settings.dispatch_window_seconds,
            fetch_attempts=self._settings.campaign_fetch_attempts,
            fetch_wait_seconds=self._settings.campaign_fetch_wait_seconds,
            observer_queue_size=self._settings.observer_queue_size,
            sleep=self._sleep,
        )

        # Older runs of this campaign are terminal; their reports live in the log
        for stale_id in [
            sid for sid, c in self._controllers.items() if c.campaign_id == campaign_id
        ]:
            del self._controllers[stale_id]
        self._controllers[session.session_id] = controller

        controller.start()
        logger.info(
            "automation_started",
            session_id=session.session_id,
            campaign_id=campaign_id,
            mode=mode.value,
        )
        return session.session_id

    def advance_manual_stage(self, session_id: str) -> bool:
        """Resume a MANUAL run halted for review.

        Returns:
            False if the run was not waiting to be advanced.

        Raises:
            SessionNotFoundError: If this process has no run with that id.
            ManualModeRequiredError: If the run is in AUTOMATIC mode.
        """
        return self._controller(session_id).advance_manual_stage()

    def set_creator_preferences(
        self, session_id: str, preferences: list[CreatorContactPreference]
    ) -> CampaignState:
        """Replace a run's contact preferences and return the refreshed state."""
        controller = self._controller(session_id)
        controller.set_creator_preferences(preferences)
        return controller.state

    async def cancel_automation(self, session_id: str) -> bool:
        """Request cancellation of a run.

        Returns:
            False if the run had already finished.
        """
        return await self._controller(session_id).cancel()

    def get_state(self, session_id: str) -> CampaignState:
        """Return the live campaign state of a run."""
        return self._controller(session_id).state

    def get_report(self, campaign_id: str) -> AutomationReport | None:
        """Return the report of the campaign's latest session, or ``None``."""
        return self._log.get_report(campaign_id)

    def get_history(self, campaign_id: str, limit: int = 50) -> list[AutomationSession]:
        """Return the campaign's sessions, newest first."""
        return self._log.get_history(campaign_id, limit=limit)

    async def wait(self, session_id: str) -> None:
        """Wait until the run's scheduled stages have finished."""
        await self._controller(session_id).wait()

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Cancel every run still in progress and wait for them to stop."""
        running = [c for c in self._controllers.values() if not c.is_terminal]
        for controller in running:
            await controller.cancel()
        if running:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*(c.wait() for c in running)), timeout=timeout
                )
            except TimeoutError:
                logger.warning(
                    "automation_shutdown_timeout",
                    session_ids=[c.session_id for c in running if not c.is_terminal],
                )

    def _controller(self, session_id: str) -> PipelineController:
        controller = self._controllers.get(session_id)
        if controller is None:
            raise SessionNotFoundError(session_id)
        return controller
