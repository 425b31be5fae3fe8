"""Delivery channel selection and sending.

``EmailSender.send`` never raises: every path ends in a DeliveryOutcome.

Channel policy per tenant:
- NO_OVERRIDE: the platform provider. Used when no tenant is given, the
  tenant has no complete relay config, or the stored relay secret cannot
  be decrypted.
- OVERRIDE_STRICT: the tenant's relay only. A relay failure is returned
  as a failed outcome and is never retried on the platform provider.
"""

from dataclasses import dataclass
from email.utils import formataddr
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from expiry_alerts.config.environment import EnvironmentConfig
from expiry_alerts.config.models import EmailConfig
from expiry_alerts.domain.models import (
    ChannelPolicy,
    DeliveryChannel,
    DeliveryOutcome,
    FailureContext,
    OutboundEmail,
    TenantSmtpConfig,
)
from expiry_alerts.logging import get_logger
from expiry_alerts.persistence.database import Database
from expiry_alerts.persistence.repositories import TenantRepository
from expiry_alerts.security.secrets import SecretDecryptionError, decrypt_secret

from .provider_client import ProviderClient
from .smtp_client import SMTPClient, build_mime_message

if TYPE_CHECKING:
    from .failures import FailureHandler

logger = get_logger(__name__, component="sender")

DEV_MODE_MESSAGE_ID = "dev-mode-skipped"


@dataclass(frozen=True)
class ChannelSelection:
    """Resolved policy for one tenant; ``password`` is set only for OVERRIDE_STRICT."""

    policy: ChannelPolicy
    relay: Optional[TenantSmtpConfig] = None
    password: Optional[str] = None


def is_placeholder_address(address: str, suffix: str = ".internal") -> bool:
    """True for synthetic, non-deliverable addresses such as ``nologin-x@acme.internal``."""
    domain = address.rsplit("@", 1)[-1].strip().lower() if "@" in address else ""
    return not domain or domain.endswith(suffix.lower())


def filter_deliverable(addresses: Sequence[str], suffix: str = ".internal") -> List[str]:
    return [a for a in addresses if a and not is_placeholder_address(a, suffix)]


class EmailSender:
    """Selects a channel per tenant and sends.

    Relay lookups are cached per tenant for the lifetime of the sender, which
    is one job invocation.
    """

    def __init__(
        self,
        database: Database,
        env_config: EnvironmentConfig,
        email_config: Optional[EmailConfig] = None,
        provider: Optional[ProviderClient] = None,
        smtp_client: Optional[SMTPClient] = None,
        failure_handler: Optional["FailureHandler"] = None,
    ):
        self.database = database
        self.env_config = env_config
        self.email_config = email_config or EmailConfig()
        self.provider = provider
        self.smtp_client = smtp_client or SMTPClient(timeout=self.email_config.smtp_timeout)
        self.failure_handler = failure_handler
        self._selections: Dict[str, ChannelSelection] = {}

    def resolve_channel_policy(self, tenant_id: Optional[str]) -> ChannelSelection:
        """Decide which channel a tenant's mail goes through.

        Raises:
            PersistenceError: If the tenant's relay config cannot be read
        """
        if not tenant_id:
            return ChannelSelection(ChannelPolicy.NO_OVERRIDE)
        if tenant_id in self._selections:
            return self._selections[tenant_id]

        with self.database.session() as session:
            relay = TenantRepository(session).get_smtp_config(tenant_id)

        selection = ChannelSelection(ChannelPolicy.NO_OVERRIDE)
        if relay is not None and relay.is_complete:
            try:
                password = decrypt_secret(relay.secret, self.env_config.smtp_encryption_key)
                selection = ChannelSelection(ChannelPolicy.OVERRIDE_STRICT, relay, password)
            except SecretDecryptionError as e:
                logger.warning(
                    f"Could not decrypt relay secret for tenant {tenant_id}; using platform channel",
                    extra={
                        "event": "email.relay.decrypt_failed",
                        "tenant_id": tenant_id,
                        "error": str(e),
                    },
                )

        self._selections[tenant_id] = selection
        return selection

    def send(self, message: OutboundEmail, tenant_id: Optional[str] = None) -> DeliveryOutcome:
        tenant_id = tenant_id or message.tenant_id
        deliverable = filter_deliverable(message.to, self.email_config.placeholder_domain_suffix)

        if not deliverable:
            logger.info(
                "No deliverable recipients; send skipped",
                extra={
                    "event": "email.send.skipped",
                    "tenant_id": tenant_id,
                    "action": message.action,
                    "filtered": len(message.to),
                },
            )
            return DeliveryOutcome(success=True, skipped=True)

        if len(deliverable) != len(message.to):
            message = message.model_copy(update={"to": deliverable})

        try:
            selection = self.resolve_channel_policy(tenant_id)
        except Exception as e:
            logger.error(
                f"Could not resolve delivery channel for tenant {tenant_id}: {e}",
                extra={"event": "email.channel.lookup_failed", "tenant_id": tenant_id},
            )
            return DeliveryOutcome(success=False, error=f"Could not resolve delivery channel: {e}")

        if selection.policy == ChannelPolicy.OVERRIDE_STRICT:
            return self._send_relay(message, selection, tenant_id)
        return self.send_platform(message)

    def send_platform(self, message: OutboundEmail) -> DeliveryOutcome:
        """Send through the platform provider only. Never consults the failure handler."""
        if self.provider is None:
            logger.info(
                f"Development mode: email to {', '.join(message.to)} not sent",
                extra={
                    "event": "email.send.dev_mode",
                    "action": message.action,
                    "subject": message.subject,
                },
            )
            return DeliveryOutcome(
                success=True, message_id=DEV_MODE_MESSAGE_ID, channel=DeliveryChannel.PLATFORM
            )

        from_address = formataddr((self.env_config.email_from_name, self.env_config.email_from))
        try:
            message_id = self.provider.send(message, from_address)
        except Exception as e:
            return self._failure(message, e, DeliveryChannel.PLATFORM)

        logger.info(
            "Email sent via platform provider",
            extra={
                "event": "email.send.success",
                "channel": DeliveryChannel.PLATFORM.value,
                "action": message.action,
                "message_id": message_id,
                "recipients": len(message.to),
            },
        )
        return DeliveryOutcome(success=True, message_id=message_id, channel=DeliveryChannel.PLATFORM)

    def _send_relay(
        self, message: OutboundEmail, selection: ChannelSelection, tenant_id: str
    ) -> DeliveryOutcome:
        relay = selection.relay
        try:
            mime = build_mime_message(message, relay.from_address, relay.from_name)
            message_id = self.smtp_client.send(
                mime,
                host=relay.host,
                port=relay.port,
                user=relay.user,
                password=selection.password,
                secure=relay.secure,
                use_tls=self.email_config.use_tls,
            )
        except Exception as e:
            return self._failure(message, e, DeliveryChannel.TENANT_SMTP, tenant_id)

        logger.info(
            "Email sent via tenant relay",
            extra={
                "event": "email.send.success",
                "channel": DeliveryChannel.TENANT_SMTP.value,
                "tenant_id": tenant_id,
                "action": message.action,
                "message_id": message_id,
                "recipients": len(message.to),
            },
        )
        return DeliveryOutcome(success=True, message_id=message_id, channel=DeliveryChannel.TENANT_SMTP)

    def _failure(
        self,
        message: OutboundEmail,
        error: Exception,
        channel: DeliveryChannel,
        tenant_id: Optional[str] = None,
    ) -> DeliveryOutcome:
        code = getattr(error, "code", None)
        logger.error(
            f"Email delivery failed via {channel.value}: {error}",
            extra={
                "event": "email.send.failure",
                "channel": channel.value,
                "tenant_id": tenant_id or message.tenant_id,
                "action": message.action,
                "error_type": type(error).__name__,
            },
        )
        return DeliveryOutcome(
            success=False,
            error=str(error),
            error_code=str(code) if code is not None else None,
            channel=channel,
        )

    def send_with_failure_handling(self, message: OutboundEmail) -> DeliveryOutcome:
        """Send, and hand any failure to the failure handler exactly once."""
        outcome = self.send(message)
        if not outcome.success:
            self._report_failure(message, outcome)
        return outcome

    def send_bulk(self, messages: Sequence[OutboundEmail]) -> List[DeliveryOutcome]:
        """Send each message in order with failure handling; one failure never stops the rest."""
        outcomes = [self.send_with_failure_handling(message) for message in messages]
        failed = sum(1 for o in outcomes if not o.success)
        if failed:
            logger.warning(
                f"{failed} of {len(outcomes)} email(s) failed",
                extra={"event": "email.bulk.partial_failure", "failed": failed, "total": len(outcomes)},
            )
        return outcomes

    def _report_failure(self, message: OutboundEmail, outcome: DeliveryOutcome) -> None:
        if self.failure_handler is None:
            return
        if not message.tenant_id:
            logger.error(
                "Email failure without tenant attribution was not recorded",
                extra={"event": "email.failure.unattributed", "action": message.action},
            )
            return

        name, slug = message.organization_name, message.organization_slug
        if not (name and slug):
            org = self.failure_handler.organization_context(message.tenant_id)
            name, slug = org if org else ("Unknown", "unknown")

        context = FailureContext(
            module=message.module,
            action=message.action,
            tenant_id=message.tenant_id,
            organization_name=name,
            organization_slug=slug,
            recipient_email=", ".join(message.to),
            recipient_name=message.recipient_name,
            email_subject=message.subject,
            error=outcome.error or "Unknown error",
            error_code=outcome.error_code,
            metadata={**message.metadata, "channel": outcome.channel.value},
        )
        self.failure_handler.handle(context)
