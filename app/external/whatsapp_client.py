import asyncio
import logging
import re
from datetime import datetime
from typing import Optional, Dict, Any
import httpx
from app.config import settings
from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException, whatsapp_circuit_breaker
from app.core.exceptions import ExternalAPIException
from app.core.logging_utils import sanitize_log_message

logger = logging.getLogger(__name__)

SIGNATURE = "Connect Job World"

# Country codes recognised after a leading 0 (e.g. 0212..., 033...)
ZERO_PREFIXED_COUNTRY_CODES = ("212", "962", "971", "966", "33", "1")

STAGE_MESSAGES = {
    "pending_validation": "Your application is under review.",
    "validated": "Your application has been validated.",
    "call_confirmed": "Your call with our team is confirmed.",
    "documents_requested": "Please upload the requested documents.",
    "documents_uploaded": "We have received your documents.",
    "documents_verified": "Your documents have been verified.",
    "converted_to_client": "Congratulations! Your application has been accepted.",
}


def format_phone_number(phone: Optional[str], default_country_code: Optional[str] = None) -> Optional[str]:
    """
    Normalize a phone number to international ``+<digits>`` form.

    Local numbers (leading 0 without a known country code, e.g. 0612345678)
    get the default country code.

    Returns:
        Normalized number, or None when nothing usable was given
    """
    if not phone:
        return None
    country_code = default_country_code or settings.WHATSAPP_DEFAULT_COUNTRY_CODE

    cleaned = re.sub(r'[\s\-()]', '', phone)
    if not cleaned:
        return None

    if cleaned.startswith('+'):
        return cleaned
    if cleaned.startswith('00'):
        return '+' + cleaned[2:]
    if cleaned.startswith('0'):
        without_zero = cleaned[1:]
        if without_zero.startswith(ZERO_PREFIXED_COUNTRY_CODES):
            return '+' + without_zero
        return f'+{country_code}{without_zero}'
    return '+' + cleaned


class WhatsAppClient:
    """Client for the WhatsApp messaging gateway with retry logic and a circuit breaker."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self.base_url = (settings.WHATSAPP_API_URL if base_url is None else base_url).rstrip('/')
        self.api_token = settings.WHATSAPP_API_TOKEN
        self.timeout = settings.WHATSAPP_API_TIMEOUT
        self.retry_attempts = max(1, settings.WHATSAPP_API_RETRY_ATTEMPTS)
        self.transport = transport
        self.circuit_breaker = circuit_breaker or whatsapp_circuit_breaker

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make HTTP request with retry logic and exponential backoff.

        4xx answers other than 429 fail immediately; 5xx, 429, timeouts and
        connection errors are retried.

        Raises:
            ExternalAPIException if request fails after retries
        """
        url = f"{self.base_url}{endpoint}"
        last_exception = None

        for attempt in range(self.retry_attempts):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.request(method=method, url=url, headers=self._get_headers(), json=data)

                if response.status_code < 400:
                    return response.json() if response.content else {}

                if 400 <= response.status_code < 500 and response.status_code != 429:
                    raise ExternalAPIException(
                        detail=f"WhatsApp gateway error: {response.status_code}"
                    )

                last_exception = ExternalAPIException(
                    detail=f"WhatsApp gateway error: {response.status_code}"
                )
            except httpx.TimeoutException as e:
                last_exception = ExternalAPIException(detail=f"WhatsApp gateway timeout: {e}")
            except httpx.RequestError as e:
                last_exception = ExternalAPIException(detail=f"WhatsApp gateway request error: {e}")

            if attempt < self.retry_attempts - 1:
                await asyncio.sleep(2 ** attempt)

        raise last_exception

    async def send_message(self, phone: str, message: str) -> bool:
        """
        Send a text message.

        Returns:
            True if the gateway accepted it, False when sending is disabled or there is no number

        Raises:
            ExternalAPIException, CircuitBreakerOpenException
        """
        if not self.enabled:
            logger.info(sanitize_log_message("WhatsApp disabled, message not sent", phone=phone))
            return False

        to = format_phone_number(phone)
        if not to:
            logger.warning("WhatsApp message skipped: no phone number")
            return False

        await self.circuit_breaker.call(
            self._make_request,
            "POST",
            "/messages",
            data={"to": to, "body": message}
        )
        logger.info(sanitize_log_message("WhatsApp message sent", phone=to))
        return True

    async def deliver(self, phone: str, message: str) -> bool:
        """
        Best-effort send for background tasks: failures are logged, never raised.
        """
        try:
            return await self.send_message(phone, message)
        except (ExternalAPIException, CircuitBreakerOpenException) as e:
            logger.warning(
                sanitize_log_message(
                    "WhatsApp message failed",
                    phone=phone,
                    Error=getattr(e, "detail", None) or str(e)
                )
            )
            return False

    @staticmethod
    def _track_url() -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/track"

    async def notify_new_submission(self, name: str, phone: str, service: str) -> bool:
        message = (
            f"Hello {name}!\n\n"
            f"Thank you for your request for: {service.replace('_', ' ')}.\n"
            "We received it and our team will contact you within 24 hours.\n\n"
            f"Track your application: {self._track_url()}\n\n"
            f"{SIGNATURE}"
        )
        return await self.deliver(phone, message)

    async def notify_status_update(self, name: str, phone: str, stage: str, custom_message: str = "") -> bool:
        status_text = STAGE_MESSAGES.get(stage, "Your application status was updated.")
        extra = f"{custom_message}\n\n" if custom_message else ""
        message = (
            f"Dear {name},\n\n{status_text}\n\n{extra}"
            f"Track your application: {self._track_url()}\n\n"
            f"{SIGNATURE}"
        )
        return await self.deliver(phone, message)

    async def notify_document_link(self, name: str, phone: str, url: str, expires_at: datetime) -> bool:
        message = (
            f"Dear {name},\n\n"
            "Please upload the documents needed to complete your application:\n"
            f"{url}\n\n"
            f"This link is valid until {expires_at:%Y-%m-%d}.\n\n"
            f"{SIGNATURE}"
        )
        return await self.deliver(phone, message)

    async def notify_payment_link(self, name: str, phone: str, url: str, amount: float, currency: str) -> bool:
        message = (
            f"Dear {name},\n\n"
            f"Please transfer {amount:g} {currency} and upload your receipt here:\n"
            f"{url}\n\n"
            f"{SIGNATURE}"
        )
        return await self.deliver(phone, message)

    async def notify_payment_reviewed(
        self,
        name: str,
        phone: str,
        confirmed: bool,
        reason: Optional[str] = None
    ) -> bool:
        if confirmed:
            body = "Your payment has been confirmed. Thank you!"
        else:
            body = "We could not confirm your payment receipt."
            if reason:
                body += f"\nReason: {reason}"
            body += "\nPlease upload a new receipt using the same link."
        message = f"Dear {name},\n\n{body}\n\n{SIGNATURE}"
        return await self.deliver(phone, message)
