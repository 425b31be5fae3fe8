"""Capture and escalation of failed email deliveries.

``FailureHandler.handle`` runs four independent steps: cooldown check,
failure record, in-app notice to tenant admins, super-admin escalation
email. Each step logs its own errors and none of them propagate, so a
broken escalation path cannot abort the job that reported the failure.
"""

import threading
import time
from typing import Callable, Dict, Optional, Tuple

from expiry_alerts.config.environment import EnvironmentConfig
from expiry_alerts.domain.models import (
    DeliveryOutcome,
    EmailFailureRecord,
    FailureContext,
    OutboundEmail,
)
from expiry_alerts.logging import get_logger
from expiry_alerts.persistence.database import Database
from expiry_alerts.persistence.repositories import (
    EmailFailureRepository,
    MemberRepository,
    NotificationRepository,
    TenantRepository,
)

from .payloads import email_failure_notification, failure_alert_context
from .templates import EMAIL_FAILURE_ALERT, TemplateRenderer

logger = get_logger(__name__, component="failures")

DEFAULT_COOLDOWN_SECONDS = 300
MAX_TRACKED_KEYS = 100


class FailureCooldown:
    """Last-alert times per failure key.

    One instance can be shared by every handler in the process so that
    suppression survives across job invocations. Safe to share between
    scheduler threads.
    """

    def __init__(
        self,
        cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.cooldown_seconds = cooldown_seconds
        self._monotonic = monotonic
        self._last_alert: Dict[str, float] = {}
        self._lock = threading.Lock()

    def check_and_mark(self, key: str) -> bool:
        """True if ``key`` alerted within the window; otherwise mark it now."""
        now = self._monotonic()
        with self._lock:
            last = self._last_alert.get(key)
            if last is not None and now - last < self.cooldown_seconds:
                return True

            self._last_alert[key] = now
            if len(self._last_alert) > MAX_TRACKED_KEYS:
                self._last_alert = {
                    k: t for k, t in self._last_alert.items() if now - t < self.cooldown_seconds
                }
            return False


class FailureHandler:
    """Records, notifies and escalates delivery failures.

    ``escalate`` must send through the platform channel without failure
    handling (``EmailSender.send_platform``); it is never routed back here.
    """

    def __init__(
        self,
        database: Database,
        env_config: EnvironmentConfig,
        escalate: Callable[[OutboundEmail], DeliveryOutcome],
        renderer: Optional[TemplateRenderer] = None,
        cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
        cooldown: Optional[FailureCooldown] = None,
    ):
        self.database = database
        self.env_config = env_config
        self.escalate = escalate
        self.renderer = renderer or TemplateRenderer()
        self.cooldown = cooldown or FailureCooldown(cooldown_seconds, monotonic)

    def handle(self, context: FailureContext) -> None:
        try:
            if self.cooldown.check_and_mark(context.alert_key):
                logger.debug(
                    "Duplicate email failure within cooldown; skipped",
                    extra={
                        "event": "email.failure.rate_limited",
                        "tenant_id": context.tenant_id,
                        "email_module": context.module,
                        "action": context.action,
                    },
                )
                return

            logger.error(
                f"Email delivery failure for {context.action}: {context.error}",
                extra={
                    "event": "email.failure.handling",
                    "tenant_id": context.tenant_id,
                    "email_module": context.module,
                    "action": context.action,
                    "recipient_email": context.recipient_email,
                    "error_code": context.error_code,
                },
            )
        except Exception as e:
            logger.error(
                f"Failed to start email failure handling: {e}",
                extra={"event": "email.failure.handler_error", "tenant_id": context.tenant_id},
            )

        self._persist(context)
        self._notify_tenant_admins(context)
        self._escalate(context)

    def organization_context(self, tenant_id: str) -> Optional[Tuple[str, str]]:
        """(name, slug) for a tenant, or None if unknown or unreadable."""
        try:
            with self.database.session() as session:
                return TenantRepository(session).organization_context(tenant_id)
        except Exception as e:
            logger.error(
                f"Failed to load organization context: {e}",
                extra={"event": "email.failure.org_lookup_failed", "tenant_id": tenant_id},
            )
            return None

    def _persist(self, context: FailureContext) -> None:
        try:
            with self.database.session() as session:
                EmailFailureRepository(session).create(
                    EmailFailureRecord(**context.model_dump())
                )
        except Exception as e:
            logger.error(
                f"Failed to persist email failure record: {e}",
                extra={"event": "email.failure.persist_failed", "tenant_id": context.tenant_id},
            )

    def _notify_tenant_admins(self, context: FailureContext) -> None:
        try:
            with self.database.session() as session:
                admins = MemberRepository(session).list_admins(context.tenant_id)
                if not admins:
                    logger.debug(
                        "No tenant admins to notify about email failure",
                        extra={"event": "email.failure.no_admins", "tenant_id": context.tenant_id},
                    )
                    return

                notifications = NotificationRepository(session)
                for admin in admins:
                    notifications.create(email_failure_notification(context, admin))
        except Exception as e:
            logger.error(
                f"Failed to notify tenant admins about email failure: {e}",
                extra={"event": "email.failure.notify_failed", "tenant_id": context.tenant_id},
            )

    def _escalate(self, context: FailureContext) -> None:
        recipient = self.env_config.super_admin_email
        if not recipient:
            logger.warning(
                "SUPER_ADMIN_EMAIL not configured; email failure not escalated",
                extra={"event": "email.failure.no_super_admin", "tenant_id": context.tenant_id},
            )
            return

        try:
            rendered = self.renderer.render(
                EMAIL_FAILURE_ALERT, failure_alert_context(context, self.env_config)
            )
            outcome = self.escalate(
                OutboundEmail(
                    to=[recipient],
                    subject=rendered.subject,
                    html=rendered.html,
                    text=rendered.text,
                    module="system",
                    action="email-failure-alert",
                    tenant_id=context.tenant_id,
                )
            )
        except Exception as e:
            logger.error(
                f"Failed to send email failure escalation: {e}",
                extra={"event": "email.failure.escalation_failed", "tenant_id": context.tenant_id},
            )
            return

        if not outcome.success:
            logger.error(
                f"Failed to send email failure escalation: {outcome.error}",
                extra={"event": "email.failure.escalation_failed", "tenant_id": context.tenant_id},
            )
