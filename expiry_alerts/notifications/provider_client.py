"""HTTP client for the managed transactional email provider.

Speaks the Resend-style API: ``POST <url>`` with a bearer key and a JSON
body ``{from, to, subject, html, text}``, answering ``{"id": ...}``.
"""

from typing import Any, Dict, Optional

import requests

from expiry_alerts.domain.models import OutboundEmail
from expiry_alerts.logging import get_logger

from .models import ProviderDeliveryError

logger = get_logger(__name__, component="provider")


class ProviderClient:
    """Sends email through the platform provider. One instance per job run."""

    def __init__(
        self,
        api_key: str,
        url: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required for the provider client")

        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "User-Agent": "ExpiryAlerts/1.0",
            }
        )

    def send(self, email: OutboundEmail, from_address: str) -> str:
        """Send one email and return the provider's message id.

        Raises:
            ProviderDeliveryError: On HTTP errors, timeouts or malformed responses
        """
        payload: Dict[str, Any] = {
            "from": from_address,
            "to": list(email.to),
            "subject": email.subject,
            "html": email.html,
            "text": email.text,
        }

        try:
            logger.debug(
                f"HTTP POST request to {self.url}",
                extra={"event": "provider.send.request", "url": self.url, "recipients": len(email.to)},
            )
            response = self._session.post(self.url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {self.url} timed out after {self.timeout} seconds",
                extra={"event": "provider.send.timeout", "url": self.url, "timeout": self.timeout},
            )
            raise ProviderDeliveryError(
                f"Provider request timed out after {self.timeout} seconds", code="timeout"
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {self.url} failed: {e}",
                extra={"event": "provider.send.error", "error_type": type(e).__name__, "url": self.url},
            )
            raise ProviderDeliveryError(f"Provider request failed: {e}") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.error(
                f"HTTP {response.status_code} error from provider",
                extra={
                    "event": "provider.send.rejected",
                    "status_code": response.status_code,
                    "url": self.url,
                },
            )
            raise ProviderDeliveryError(
                f"Provider rejected message: HTTP {response.status_code}: {detail}",
                code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderDeliveryError(f"Provider returned invalid JSON: {e}") from e

        message_id = data.get("id") if isinstance(data, dict) else None
        if not message_id:
            raise ProviderDeliveryError("Provider response did not include a message id")
        return message_id

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "ProviderClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _error_detail(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason or "unknown error"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)
