"""Pipeline controller: drives one automation session through its stages.

Stages run in a fixed order (initialization, creator search, contract
generation, outreach, completion).  Each stage appends a STARTED step record
before it invokes any capability and a closing record after, with the
wall-clock duration of the whole stage.  Failures are written to the audit
log before the state machine moves, so the log is never behind the
observable state.

A MANUAL session halts after creator search until
:meth:`PipelineController.advance_manual_stage` is called.  Cancellation is
cooperative: the flag is checked before each stage and between fan-out
items, never mid-item.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from campaign_automation.audit.logger import AutomationLogger
from campaign_automation.audit.models import AutomationReport, SessionUpdate, StepRecord
from campaign_automation.audit.store import utc_now
from campaign_automation.capabilities.models import CapabilityResult, FailureKind
from campaign_automation.capabilities.registry import CapabilityRegistry
from campaign_automation.domain.errors import ManualModeRequiredError
from campaign_automation.domain.models import (
    CampaignDetail,
    CampaignState,
    CommunicationRef,
    ContractRef,
    Creator,
    CreatorContactPreference,
    CreatorSearchCriteria,
)
from campaign_automation.domain.types import (
    TERMINAL_SESSION_STATUS,
    AutomationMode,
    CommunicationStatus,
    CommunicationType,
    ContactMethod,
    PipelineState,
    StepStatus,
    StepType,
)
from campaign_automation.observability.metrics import ACTIVE_RUNS, DISPATCH_OUTCOMES, RUNS_FINISHED
from campaign_automation.pipeline.dispatch import BulkDispatcher, ItemOutcome
from campaign_automation.pipeline.observer import SnapshotChannel, StateObserver
from campaign_automation.pipeline.preferences import apply_preferences
from campaign_automation.planning.strategy import OutreachStrategy, TemplateStrategy
from campaign_automation.resilience.retry import resilient_read
from campaign_automation.state_machine.machine import PipelineStateMachine
from campaign_automation.state_machine.transitions import PipelineEvent

logger = structlog.get_logger()

_COUNTERS = (
    "completed_steps",
    "creators_found",
    "creators_contacted",
    "contracts_generated",
    "contracts_sent",
    "emails_sent",
    "calls_made",
    "successful_communications",
    "failed_communications",
)


class PipelineController:
    """Owns the live campaign state of one session and sequences its stages.

    Args:
        session_id: The persisted session this controller drives.
        campaign_id: Campaign the session belongs to.
        mode: AUTOMATIC or MANUAL.
        registry: Capability registry used for every external operation.
        automation_logger: Audit logger for steps, errors and counters.
        strategy: Picks contract terms and composes outreach messages.
        preferences: Contact preferences known before the run starts.
        observer: Optional callback receiving a snapshot after every mutation.
        dispatch_delay: Minimum seconds between fan-out items.
        dispatch_max_per_window: Fan-out items allowed before a cooldown; 0 disables it.
        dispatch_window_seconds: Cooldown taken once that cap is reached.
        fetch_attempts: Attempts for idempotent reads on ``unavailable``.
        fetch_wait_seconds: Initial wait between those attempts.
        observer_queue_size: Pending snapshots kept before the oldest is dropped.
        sleep: Awaitable sleep used by the dispatcher; injectable for tests.
    """

    def __init__(
        self,
        session_id: str,
        campaign_id: str,
        mode: AutomationMode,
        registry: CapabilityRegistry,
        automation_logger: AutomationLogger,
        strategy: OutreachStrategy | None = None,
        preferences: list[CreatorContactPreference] | None = None,
        observer: StateObserver | None = None,
        dispatch_delay: float = 5.0,
        dispatch_max_per_window: int = 10,
        dispatch_window_seconds: float = 60.0,
        fetch_attempts: int = 5,
        fetch_wait_seconds: float = 2.0,
        observer_queue_size: int = 16,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.session_id = session_id
        self.campaign_id = campaign_id
        self.mode = mode
        self._registry = registry
        self._log = automation_logger
        self._strategy: OutreachStrategy = strategy or TemplateStrategy()
        self._dispatcher: BulkDispatcher[Creator] = BulkDispatcher(
            dispatch_delay,
            max_per_window=dispatch_max_per_window,
            window_seconds=dispatch_window_seconds,
            sleep=sleep,
        )
        self._channel = SnapshotChannel(observer, observer_queue_size) if observer else None

        self._fetch_campaign = resilient_read(
            "get_campaign_detail", fetch_attempts, fetch_wait_seconds
        )(self._registry.get_campaign_detail)
        self._search_creators = resilient_read(
            "search_creators", fetch_attempts, fetch_wait_seconds
        )(self._registry.search_creators)

        self._machine = PipelineStateMachine()
        self._state = CampaignState(creator_preferences=list(preferences or []))
        self._campaign: CampaignDetail | None = None
        self._contracts: dict[str, ContractRef] = {}
        self._counts: dict[str, int] = dict.fromkeys(_COUNTERS, 0)
        self._sent_channels: dict[str, ContactMethod] = {}
        self._open: tuple[StepRecord, float] | None = None

        self._task: asyncio.Task[None] | None = None
        self._busy = False
        self._active = False
        self._cancel_requested = False
        self._report: AutomationReport | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> CampaignState:
        """Return a copy of the live campaign state."""
        return self._state.model_copy(deep=True)

    @property
    def status(self) -> PipelineState:
        """Return the current pipeline state."""
        return self._machine.state

    @property
    def is_terminal(self) -> bool:
        """Return True once the run is COMPLETED, FAILED or CANCELLED."""
        return self._machine.is_terminal

    @property
    def is_busy(self) -> bool:
        """Return True while stages are executing."""
        return self._busy

    @property
    def awaiting_advance(self) -> bool:
        """Return True if a MANUAL run is halted for operator review."""
        return (
            self.mode == AutomationMode.MANUAL
            and not self._busy
            and self._machine.state == PipelineState.CREATORS_LOADED
        )

    @property
    def counters(self) -> dict[str, int]:
        """Return a copy of the session counters."""
        return dict(self._counts)

    @property
    def report(self) -> AutomationReport | None:
        """Return the closing report once the run is terminal."""
        return self._report

    # ------------------------------------------------------------------
    # Caller operations
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Schedule :meth:`run` as a task on the running loop and return it."""
        self._busy = True
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def run(self) -> None:
        """Run from INITIATED to completion, or to the MANUAL review halt."""
        if self.is_terminal:
            # Cancelled before the task got to run
            self._busy = False
            return
        self._busy = True
        if not self._active:
            self._active = True
            ACTIVE_RUNS.inc()
        if self._channel is not None:
            self._channel.start()
        await self._guarded(self._run_initial)

    def advance_manual_stage(self) -> bool:
        """Resume a halted MANUAL run from contract generation onwards.

        Schedules the remaining stages on the running loop.  Returns False
        without doing anything if the run is not halted for review, which
        makes a second call before the next stage completes a no-op.

        Raises:
            ManualModeRequiredError: If the session runs in AUTOMATIC mode.
        """
        if self.mode != AutomationMode.MANUAL:
            raise ManualModeRequiredError(self.session_id)
        if not self.awaiting_advance:
            logger.info(
                "manual_advance_ignored",
                session_id=self.session_id,
                state=self._machine.state.value,
                busy=self._busy,
            )
            return False

        self._busy = True
        self._task = asyncio.get_running_loop().create_task(self._guarded(self._run_remaining))
        return True

    def set_creator_preferences(self, preferences: list[CreatorContactPreference]) -> None:
        """Replace the operator's contact preferences and refresh the projection.

        The projection always shows the latest channel.  Contract generation
        uses the preferences current when that stage starts; outreach uses
        the channel current when each item is sent.  Stages already executed
        are not re-run.
        """
        self._state.creator_preferences = list(preferences)
        if self._state.selected_creators:
            self._state.selected_creators = apply_preferences(
                self._state.selected_creators, self._state.creator_preferences
            )
        logger.info(
            "creator_preferences_set",
            session_id=self.session_id,
            count=len(preferences),
        )
        self._publish()

    async def cancel(self) -> bool:
        """Request cooperative cancellation.

        A run that is executing stops at its next safe point.  A run that is
        idle (not started, or halted for MANUAL review) is closed as
        CANCELLED immediately.

        Returns:
            False if the run had already reached a terminal state.
        """
        if self.is_terminal:
            return False
        self._cancel_requested = True
        logger.info("automation_cancel_requested", session_id=self.session_id, busy=self._busy)
        if not self._busy:
            await self._finish_cancelled()
        return True

    async def wait(self) -> None:
        """Wait for scheduled stages to finish and pending snapshots to be delivered."""
        if self._task is not None:
            await asyncio.shield(self._task)
        if self._channel is not None:
            await self._channel.drain()

    # ------------------------------------------------------------------
    # Stage sequencing
    # ------------------------------------------------------------------

    async def _guarded(self, body: Callable[[], Awaitable[None]]) -> None:
        with structlog.contextvars.bound_contextvars(
            session_id=self.session_id, campaign_id=self.campaign_id
        ):
            try:
                await body()
            except Exception as exc:
                logger.exception("automation_run_crashed")
                await self._fail_unexpected(exc)
            finally:
                self._busy = False
                if self.is_terminal and self._channel is not None:
                    await self._channel.close()

    async def _run_initial(self) -> None:
        if await self._stop_if_cancelled():
            return
        if not await self._initialize():
            return
        if await self._stop_if_cancelled():
            return
        if not await self._load_creators():
            return

        if self.mode == AutomationMode.MANUAL:
            self._update_session(current_step="Awaiting operator review")
            self._add_system_message("Creators loaded; waiting for operator to continue")
            logger.info("automation_halted_for_review", creators=len(self._state.selected_creators))
            self._publish()
            return

        await self._run_remaining()

    async def _run_remaining(self) -> None:
        for stage in (self._draft_contracts, self._dispatch_outreach, self._complete):
            if await self._stop_if_cancelled():
                return
            if not await stage():
                return

    async def _initialize(self) -> bool:
        opened, started = self._open_step(
            StepType.INITIALIZATION, "Load campaign", "Loading campaign details"
        )
        result = await self._fetch_campaign(self.campaign_id)
        if not result.ok:
            self._fail_stage(opened, started, result, step_name=StepType.INITIALIZATION.value)
            return False

        self._campaign = result.value
        self._close_step(
            opened,
            started,
            StepStatus.COMPLETED,
            details={
                "campaign_name": self._campaign.name,
                "associated_creators": len(self._campaign.creator_ids),
            },
        )
        return True

    async def _load_creators(self) -> bool:
        campaign = self._require_campaign()
        opened, started = self._open_step(
            StepType.CREATOR_SEARCH, "Search creators", "Loading creators"
        )
        if campaign.creator_ids:
            criteria = CreatorSearchCriteria(creator_ids=campaign.creator_ids)
            source = "campaign"
        else:
            try:
                criteria = CreatorSearchCriteria.from_campaign_settings(campaign.settings)
            except (TypeError, ValueError) as exc:
                malformed = CapabilityResult.fail(
                    FailureKind.INVALID_REQUEST, f"malformed campaign settings: {exc}"
                )
                self._fail_stage(opened, started, malformed, step_name=StepType.CREATOR_SEARCH.value)
                return False
            source = "search"

        result = await self._search_creators(criteria)
        if not result.ok:
            self._fail_stage(opened, started, result, step_name=StepType.CREATOR_SEARCH.value)
            return False

        creators = apply_preferences(list(result.value), self._state.creator_preferences)
        self._counts["creators_found"] = len(creators)
        self._close_step(
            opened,
            started,
            StepStatus.COMPLETED,
            details={"creators_found": len(creators), "source": source},
        )

        self._state.selected_creators = creators
        self._transition(PipelineEvent.LOAD_CREATORS)
        self._add_system_message(f"Found {len(creators)} creators")
        self._publish()
        return True

    async def _draft_contracts(self) -> bool:
        creators = self._state.selected_creators
        targets = [c for c in creators if c.contact_preference != ContactMethod.NONE]
        opened, started = self._open_step(
            StepType.CONTRACT_GENERATION, "Draft contracts", "Drafting contracts"
        )

        if not targets:
            self._close_step(
                opened,
                started,
                StepStatus.SKIPPED,
                details={"reason": "no creators with a contact preference", "creators": len(creators)},
            )
            cancelled = False
        else:
            report = await self._dispatcher.run(
                targets,
                self._draft_one,
                item_id=lambda c: c.id,
                on_item=self._on_contract_item,
                should_cancel=lambda: self._cancel_requested,
                propagate_callback_errors=True,
            )
            cancelled = report.cancelled
            self._close_step(
                opened,
                started,
                StepStatus.COMPLETED,
                details={
                    "drafted": report.succeeded,
                    "failed": report.failed,
                    "skipped_no_preference": len(creators) - len(targets),
                    "cancelled": cancelled,
                },
            )

        if cancelled:
            await self._finish_cancelled()
            return False
        self._transition(PipelineEvent.DRAFT_CONTRACTS)
        self._add_system_message(f"Drafted {len(self._contracts)} contracts")
        self._publish()
        return True

    async def _dispatch_outreach(self) -> bool:
        targets = [
            c
            for c in self._state.selected_creators
            if c.id in self._contracts and c.contact_preference != ContactMethod.NONE
        ]
        opened, started = self._open_step(StepType.OUTREACH, "Send outreach", "Sending outreach")

        if not targets:
            self._close_step(
                opened, started, StepStatus.SKIPPED, details={"reason": "no drafted contracts"}
            )
            cancelled = False
        else:
            report = await self._dispatcher.run(
                targets,
                self._send_one,
                item_id=lambda c: c.id,
                on_item=self._on_outreach_item,
                should_cancel=lambda: self._cancel_requested,
                propagate_callback_errors=True,
            )
            cancelled = report.cancelled
            self._close_step(
                opened,
                started,
                StepStatus.COMPLETED,
                details={"sent": report.succeeded, "failed": report.failed, "cancelled": cancelled},
            )

        if cancelled:
            await self._finish_cancelled()
            return False
        self._transition(PipelineEvent.DISPATCH_OUTREACH)
        self._add_system_message(
            f"Outreach sent to {self._counts['successful_communications']} creators, "
            f"{self._counts['failed_communications']} failed"
        )
        self._publish()
        return True

    async def _complete(self) -> bool:
        opened, started = self._open_step(
            StepType.COMPLETION, "Complete automation", "Finalizing"
        )
        result = await self._registry.update_campaign(
            self.campaign_id, {"automation_status": "completed"}
        )
        if not result.ok:
            self._log_capability_failure(result, step_name=StepType.COMPLETION.value)
        self._close_step(
            opened, started, StepStatus.COMPLETED, details={"campaign_updated": result.ok}
        )

        self._transition(PipelineEvent.COMPLETE)
        self._add_system_message("Automation completed")
        self._close_session()
        return True

    # ------------------------------------------------------------------
    # Fan-out items
    # ------------------------------------------------------------------

    async def _draft_one(self, creator: Creator) -> CapabilityResult[Any]:
        campaign = self._require_campaign()
        analytics = await self._registry.get_creator_analytics(creator.id)
        if not analytics.ok:
            logger.info(
                "analytics_unavailable_using_projection",
                creator_id=creator.id,
                error=analytics.error_message,
            )
        terms = self._strategy.contract_terms(
            campaign, creator, analytics.value if analytics.ok else None
        )
        return await self._registry.draft_contract(campaign.id, creator.id, terms)

    def _on_contract_item(self, creator: Creator, outcome: ItemOutcome) -> None:
        DISPATCH_OUTCOMES.labels(stage="contract", outcome=outcome.status.value).inc()
        if outcome.succeeded:
            contract: ContractRef = outcome.result.value
            self._contracts[creator.id] = contract
            self._state.sent_contracts.append(contract)
            self._counts["contracts_generated"] += 1
        else:
            self._log_item_failure(outcome, creator, StepType.CONTRACT_GENERATION.value)
        self._update_session()
        self._publish()

    async def _send_one(self, creator: Creator) -> CapabilityResult[Any]:
        campaign = self._require_campaign()
        channel = self._current_channel(creator.id)
        self._sent_channels[creator.id] = channel
        if channel == ContactMethod.NONE:
            return CapabilityResult.fail(
                FailureKind.INVALID_REQUEST, "contact preference changed to NONE"
            )
        contract = self._contracts[creator.id]
        message = await self._strategy.compose_message(campaign, creator, contract, channel)
        return await self._registry.dispatch_outreach(
            creator.id, message, campaign.id, channel, contract_id=contract.id
        )

    def _on_outreach_item(self, creator: Creator, outcome: ItemOutcome) -> None:
        DISPATCH_OUTCOMES.labels(stage="outreach", outcome=outcome.status.value).inc()
        # The channel the item was sent on, not the one current now
        channel = self._sent_channels.get(creator.id) or self._current_channel(creator.id)
        if not outcome.succeeded:
            self._log_item_failure(outcome, creator, StepType.OUTREACH.value, channel=channel)

        self._counts["contracts_sent"] += 1
        if outcome.succeeded:
            self._counts["successful_communications"] += 1
            self._counts["creators_contacted"] += 1
            if channel == ContactMethod.PHONE:
                self._counts["calls_made"] += 1
            else:
                self._counts["emails_sent"] += 1
            status = CommunicationStatus.SENT
            content = f"Outreach sent to {creator.name}"
        else:
            self._counts["failed_communications"] += 1
            status = CommunicationStatus.FAILED
            content = f"Outreach to {creator.name} failed"

        self._state.communications.append(
            CommunicationRef(
                id=str(uuid.uuid4()),
                type=CommunicationType.PHONE if channel == ContactMethod.PHONE else CommunicationType.EMAIL,
                status=status,
                content=content,
                timestamp=utc_now(),
                creator_id=creator.id,
            )
        )
        self._update_session()
        self._publish()

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def _stop_if_cancelled(self) -> bool:
        if not self._cancel_requested:
            return False
        await self._finish_cancelled()
        return True

    async def _finish_cancelled(self) -> None:
        if self.is_terminal:
            return
        self._add_system_message("Automation cancelled")
        self._transition(PipelineEvent.CANCEL)
        self._close_session()
        if self._channel is not None and not self._busy:
            await self._channel.close()

    def _fail_stage(
        self,
        opened: StepRecord,
        started: float,
        result: CapabilityResult[Any],
        step_name: str,
    ) -> None:
        self._log_capability_failure(result, step_name=step_name)
        self._close_step(opened, started, StepStatus.FAILED, error_message=result.error_message)
        self._add_system_message(f"Automation failed: {result.error_message}")
        self._transition(PipelineEvent.FAIL)
        self._close_session()

    async def _fail_unexpected(self, exc: Exception) -> None:
        if self.is_terminal:
            return
        opened = self._open
        step_name = opened[0].step_type.value if opened else self._state.status.value
        try:
            self._log.log_error(
                self.session_id,
                error_type=type(exc).__name__,
                error_message=str(exc),
                step_name=step_name,
                exc=exc,
            )
            if opened is not None:
                self._close_step(
                    *opened, StepStatus.FAILED, error_message=f"{type(exc).__name__}: {exc}"
                )
            self._transition(PipelineEvent.FAIL)
            self._close_session()
        except Exception:
            logger.exception("automation_failure_not_recorded", session_id=self.session_id)

    def _close_session(self) -> None:
        session_status = TERMINAL_SESSION_STATUS[self._machine.state]
        self._update_session(current_step=f"Automation {session_status.value.lower()}")
        self._report = self._log.complete_session(self.session_id, session_status)
        RUNS_FINISHED.labels(status=session_status.value).inc()
        if self._active:
            self._active = False
            ACTIVE_RUNS.dec()
        self._publish()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_campaign(self) -> CampaignDetail:
        if self._campaign is None:
            raise RuntimeError("campaign detail has not been loaded")
        return self._campaign

    def _current_channel(self, creator_id: str) -> ContactMethod:
        for preference in reversed(self._state.creator_preferences):
            if preference.creator_id == creator_id:
                return preference.contact_method
        return ContactMethod.NONE

    def _transition(self, event: PipelineEvent) -> None:
        previous = self._machine.state
        self._state.status = self._machine.trigger(event)
        logger.info(
            "pipeline_transition",
            from_state=previous.value,
            event=event.value,
            to_state=self._state.status.value,
        )

    def _open_step(self, step_type: StepType, step_name: str, label: str) -> tuple[StepRecord, float]:
        opened = self._log.log_step_started(self.session_id, step_type, step_name)
        self._update_session(current_step=label)
        self._open = (opened, time.monotonic())
        return self._open

    def _close_step(
        self,
        opened: StepRecord,
        started: float,
        status: StepStatus,
        details: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        self._open = None
        self._log.log_step_closed(
            self.session_id, opened, status, duration_ms, details=details, error_message=error_message
        )
        if status in (StepStatus.COMPLETED, StepStatus.SKIPPED):
            self._counts["completed_steps"] += 1
        self._update_session()

    def _update_session(self, current_step: str | None = None) -> None:
        self._log.update_session(
            self.session_id, SessionUpdate(current_step=current_step, **self._counts)
        )

    def _log_capability_failure(self, result: CapabilityResult[Any], step_name: str) -> None:
        failure = result.failure
        self._log.log_error(
            self.session_id,
            error_type=failure.kind.value if failure else "unknown",
            error_message=failure.message if failure else "unknown failure",
            step_name=step_name,
            context={"campaign_id": self.campaign_id},
        )

    def _log_item_failure(
        self,
        outcome: ItemOutcome,
        creator: Creator,
        step_name: str,
        channel: ContactMethod | None = None,
    ) -> None:
        result = outcome.result
        if isinstance(result, CapabilityResult) and result.failure is not None:
            error_type = result.failure.kind.value
            message = result.failure.message
        else:
            error_type = "ItemError"
            message = outcome.error_message or "item failed"

        context: dict[str, Any] = {"campaign_id": self.campaign_id, "creator_id": creator.id}
        if channel is not None:
            context["channel"] = channel.value
        contract = self._contracts.get(creator.id)
        if contract is not None and step_name == StepType.OUTREACH:
            context["contract_id"] = contract.id
        self._log.log_error(
            self.session_id,
            error_type=error_type,
            error_message=message,
            step_name=step_name,
            context=context,
        )

    def _add_system_message(self, content: str) -> None:
        self._state.communications.append(
            CommunicationRef(
                id=str(uuid.uuid4()),
                type=CommunicationType.SYSTEM,
                status=CommunicationStatus.SENT,
                content=content,
                timestamp=utc_now(),
            )
        )

    def _publish(self) -> None:
        if self._channel is not None:
            self._channel.publish(self._state)
