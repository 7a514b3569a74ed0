"""HTTP routes for starting, steering and inspecting automation runs.

The routes are thin: each one delegates to the ``AutomationService`` stored
in ``app.state.services`` and lets :func:`register_exception_handlers` map
domain errors to status codes.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from campaign_automation.domain.errors import (
    AlreadyRunningError,
    AutomationError,
    ConfigurationError,
    InvalidTransitionError,
    ManualModeRequiredError,
    SessionNotFoundError,
)
from campaign_automation.domain.models import CampaignState, CreatorContactPreference
from campaign_automation.domain.types import AutomationMode
from campaign_automation.pipeline.service import AutomationService

logger = structlog.get_logger()

router = APIRouter()


class StartAutomationRequest(BaseModel):
    """Body of ``POST /campaigns/{campaign_id}/automation``."""

    user_id: str
    mode: AutomationMode = AutomationMode.AUTOMATIC
    preferences: list[CreatorContactPreference] = Field(default_factory=list)
    session_id: str | None = None


class PreferencesRequest(BaseModel):
    """Body of ``PUT /automation/{session_id}/preferences``."""

    preferences: list[CreatorContactPreference]


def _service(request: Request) -> AutomationService:
    return request.app.state.services["automation_service"]


@router.post("/campaigns/{campaign_id}/automation", status_code=202)
async def start_automation(
    campaign_id: str, body: StartAutomationRequest, request: Request
) -> dict[str, str]:
    """Start an automation run for a campaign."""
    session_id = await _service(request).start_automation(
        campaign_id,
        body.user_id,
        body.mode,
        preferences=body.preferences,
        session_id=body.session_id,
    )
    return {"session_id": session_id, "status": "RUNNING"}


@router.post("/automation/{session_id}/advance")
async def advance_manual_stage(session_id: str, request: Request) -> dict[str, bool]:
    """Resume a MANUAL run halted for review."""
    return {"advanced": _service(request).advance_manual_stage(session_id)}


@router.put("/automation/{session_id}/preferences")
async def set_creator_preferences(
    session_id: str, body: PreferencesRequest, request: Request
) -> CampaignState:
    """Replace a run's contact preferences."""
    return _service(request).set_creator_preferences(session_id, body.preferences)


@router.post("/automation/{session_id}/cancel")
async def cancel_automation(session_id: str, request: Request) -> dict[str, bool]:
    """Request cancellation of a run."""
    return {"cancelled": await _service(request).cancel_automation(session_id)}


@router.get("/automation/{session_id}/state")
async def get_state(session_id: str, request: Request) -> CampaignState:
    """Return the live campaign state of a run."""
    return _service(request).get_state(session_id)


@router.get("/campaigns/{campaign_id}/automation/report")
async def get_report(campaign_id: str, request: Request) -> dict[str, Any]:
    """Return the report of the campaign's latest session."""
    report = _service(request).get_report(campaign_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"No automation sessions for '{campaign_id}'")
    return report.model_dump(mode="json")


@router.get("/campaigns/{campaign_id}/automation/history")
async def get_history(campaign_id: str, request: Request, limit: int = 50) -> list[dict[str, Any]]:
    """Return the campaign's sessions, newest first."""
    sessions = _service(request).get_history(campaign_id, limit=limit)
    return [s.model_dump(mode="json") for s in sessions]


_STATUS_CODES: dict[type[AutomationError], int] = {
    AlreadyRunningError: 409,
    ConfigurationError: 422,
    SessionNotFoundError: 404,
    ManualModeRequiredError: 400,
    InvalidTransitionError: 409,
}


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors raised by the service to HTTP responses.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(AutomationError)
    async def automation_error(request: Request, exc: AutomationError) -> JSONResponse:
        code = next(
            (status for cls, status in _STATUS_CODES.items() if isinstance(exc, cls)), 500
        )
        content: dict[str, Any] = {"detail": str(exc)}
        if isinstance(exc, AlreadyRunningError):
            content["running_session_id"] = exc.running_session_id
        elif isinstance(exc, ConfigurationError):
            content["problems"] = exc.problems
        logger.info("automation_request_rejected", error=type(exc).__name__, status_code=code)
        return JSONResponse(status_code=code, content=content)
