"""HTTP client for outbound creator outreach.

Email outreach is handed to a workflow webhook that owns the actual mail
delivery; phone outreach starts an outbound call through the voice agent
API.  Both return delivery *acceptance*, not delivery confirmation.

Transport errors and non-2xx responses surface as ``httpx`` exceptions;
missing configuration raises :class:`OutreachConfigurationError` before any
request is made.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

if TYPE_CHECKING:
    from campaign_automation.config import Settings

logger = structlog.get_logger()

DEFAULT_VOICE_API_URL = "https://api.elevenlabs.io/v1/convai/twilio/outbound-call"


class OutreachConfigurationError(Exception):
    """Raised when a channel is used without the configuration it needs."""


class OutreachClient:
    """Send outreach over the email webhook or the voice call API.

    Args:
        webhook_url: Endpoint that accepts email outreach payloads.
        webhook_token: Optional bearer token for the webhook.
        voice_api_url: Outbound-call endpoint of the voice agent API.
        voice_api_key: API key for the voice agent API.
        voice_agent_id: Voice agent that conducts the call.
        voice_phone_number_id: Caller phone number registered with the voice API.
        http_client: Shared ``httpx.AsyncClient``; one is created when omitted.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        webhook_url: str,
        webhook_token: str = "",
        voice_api_url: str = DEFAULT_VOICE_API_URL,
        voice_api_key: str = "",
        voice_agent_id: str = "",
        voice_phone_number_id: str = "",
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._webhook_url = webhook_url
        self._webhook_token = webhook_token
        self._voice_api_url = voice_api_url
        self._voice_api_key = voice_api_key
        self._voice_agent_id = voice_agent_id
        self._voice_phone_number_id = voice_phone_number_id
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> OutreachClient:
        """Build a client from application settings."""
        return cls(
            webhook_url=settings.outreach_webhook_url,
            webhook_token=settings.outreach_webhook_token.get_secret_value(),
            voice_api_url=settings.voice_api_url,
            voice_api_key=settings.voice_api_key.get_secret_value(),
            voice_agent_id=settings.voice_agent_id,
            voice_phone_number_id=settings.voice_phone_number_id,
            http_client=http_client,
        )

    @property
    def voice_configured(self) -> bool:
        """Return True if every voice API setting is present."""
        return bool(self._voice_api_key and self._voice_agent_id and self._voice_phone_number_id)

    async def send_email(
        self,
        to_email: str,
        campaign: dict[str, Any],
        creator: dict[str, Any],
        message: str,
        contract_id: str | None = None,
    ) -> str | None:
        """Post an email outreach payload to the webhook.

        Args:
            to_email: Recipient address.
            campaign: Campaign fields the mail template may use.
            creator: Creator fields the mail template may use.
            message: Composed outreach message body.
            contract_id: Drafted contract to reference, if any.

        Returns:
            The webhook's message reference, if it returned one.

        Raises:
            OutreachConfigurationError: If no webhook URL is configured.
            httpx.HTTPStatusError: If the webhook returns a non-2xx status.
            httpx.TransportError: If the webhook cannot be reached.
        """
        if not self._webhook_url:
            raise OutreachConfigurationError("Outreach webhook URL is not configured")

        headers: dict[str, str] = {}
        if self._webhook_token:
            headers["Authorization"] = f"Bearer {self._webhook_token}"

        response = await self._http.post(
            self._webhook_url,
            json={
                "email": to_email,
                "campaign": campaign,
                "creator": creator,
                "contract": {"id": contract_id} if contract_id else None,
                "message": message,
            },
            headers=headers,
        )
        response.raise_for_status()
        data = _json_or_empty(response)
        ref = data.get("id") or data.get("messageId")
        logger.info("outreach_email_accepted", to=to_email, ref=ref)
        return str(ref) if ref else None

    async def start_call(self, to_number: str, context: dict[str, Any]) -> str | None:
        """Start an outbound voice call.

        Args:
            to_number: Destination phone number.
            context: Campaign and creator context passed to the voice agent.

        Returns:
            The call reference returned by the voice API, if any.

        Raises:
            OutreachConfigurationError: If voice credentials are missing.
            httpx.HTTPStatusError: If the voice API returns a non-2xx status.
            httpx.TransportError: If the voice API cannot be reached.
        """
        if not self.voice_configured:
            raise OutreachConfigurationError(
                "Voice API key, agent id and phone number id must all be configured"
            )

        response = await self._http.post(
            self._voice_api_url,
            json={
                "agent_id": self._voice_agent_id,
                "agent_phone_number_id": self._voice_phone_number_id,
                "to_number": to_number,
                "conversation_initiation_client_data": {"dynamic_variables": context},
            },
            headers={"xi-api-key": self._voice_api_key},
        )
        response.raise_for_status()
        data = _json_or_empty(response)
        ref = data.get("callSid") or data.get("conversation_id")
        logger.info("outreach_call_started", to=to_number, ref=ref)
        return str(ref) if ref else None

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
