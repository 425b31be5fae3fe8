"""Template rendering for email notifications using Jinja2.

Each email kind is a template set of three files in
``expiry_alerts/notifications/email_templates``:
``<name>_subject.j2``, ``<name>_body.html.j2`` and ``<name>_body.txt.j2``.
"""

import logging
from typing import Dict

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from expiry_alerts.domain.models import RenderedEmail

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)

EMPLOYEE_DOCUMENT_ALERT = "employee_document_alert"
ADMIN_DOCUMENT_SUMMARY = "admin_document_summary"
COMPANY_DOCUMENT_ALERT = "company_document_alert"
WARRANTY_ALERT = "warranty_alert"
EMAIL_FAILURE_ALERT = "email_failure_alert"

TEMPLATE_SETS = (
    EMPLOYEE_DOCUMENT_ALERT,
    ADMIN_DOCUMENT_SUMMARY,
    COMPANY_DOCUMENT_ALERT,
    WARRANTY_ALERT,
    EMAIL_FAILURE_ALERT,
)


class TemplateRenderer:
    """Renders subject/HTML/text triples from a named template set.

    Templates are cached by the Jinja2 environment for reuse across a run.
    """

    def __init__(self, template_dir: str = "email_templates"):
        self.env = Environment(
            loader=PackageLoader("expiry_alerts.notifications", template_dir),
            # Only HTML bodies are escaped; subjects and text bodies stay literal
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    def render(self, template_set: str, context: Dict) -> RenderedEmail:
        """Render one template set.

        Raises:
            NotificationTemplateError: If the set is unknown or rendering fails
        """
        if template_set not in TEMPLATE_SETS:
            raise NotificationTemplateError(f"Unknown template set: {template_set}")

        try:
            subject = self.env.get_template(f"{template_set}_subject.j2").render(context)
            html = self.env.get_template(f"{template_set}_body.html.j2").render(context)
            text = self.env.get_template(f"{template_set}_body.txt.j2").render(context)
        except TemplateError as e:
            error_msg = f"Template rendering failed for {template_set}: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

        # Subject must be a single line
        subject = " ".join(subject.split())
        return RenderedEmail(subject=subject, html=html, text=text)
