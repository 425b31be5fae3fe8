"""SMTP client wrapper for tenant relay delivery.

A thin wrapper around smtplib with implicit TLS or STARTTLS, authentication,
and connection cleanup. Factories are injectable so tests never open sockets.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, Optional

from expiry_alerts.domain.models import OutboundEmail

from .models import SMTPDeliveryError

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


class SMTPClient:
    """Wrapper around smtplib for sending email messages through one relay."""

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
        timeout: int = 30,
    ):
        """Initialize SMTP client with optional factory injection.

        Args:
            smtp_factory: Factory for SMTP instances (for mocking)
            smtp_ssl_factory: Factory for SMTP_SSL instances (for mocking)
            timeout: Socket timeout in seconds
        """
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL
        self.timeout = timeout

    def send(
        self,
        message: EmailMessage,
        host: str,
        port: int,
        user: Optional[str] = None,
        password: Optional[str] = None,
        secure: bool = False,
        use_tls: bool = True,
    ) -> str:
        """Send a message and return its Message-ID.

        ``secure`` (or port 465) selects implicit TLS; otherwise the
        connection is upgraded with STARTTLS when ``use_tls`` is set.

        Raises:
            SMTPDeliveryError: If message delivery fails
        """
        smtp = None
        try:
            if secure or port == IMPLICIT_TLS_PORT:
                logger.debug(f"Connecting to {host}:{port} with implicit TLS")
                smtp = self.smtp_ssl_factory(
                    host, port, timeout=self.timeout, context=ssl.create_default_context()
                )
            else:
                logger.debug(f"Connecting to {host}:{port}")
                smtp = self.smtp_factory(host, port, timeout=self.timeout)
                if use_tls:
                    logger.debug("Upgrading connection with STARTTLS")
                    smtp.starttls(context=ssl.create_default_context())

            if user and password:
                logger.debug(f"Authenticating as {user}")
                smtp.login(user, password)

            smtp.send_message(message)
            logger.debug(f"Message sent successfully to {message['To']}")
            return message["Message-ID"]

        except smtplib.SMTPResponseException as e:
            error_msg = f"SMTP error during message delivery: {e.smtp_code} {_decode(e.smtp_error)}"
            logger.error(error_msg)
            raise SMTPDeliveryError(error_msg, code=e.smtp_code) from e
        except smtplib.SMTPException as e:
            error_msg = f"SMTP error during message delivery: {e}"
            logger.error(error_msg)
            raise SMTPDeliveryError(error_msg) from e
        except OSError as e:
            error_msg = f"Network error during SMTP connection: {e}"
            logger.error(error_msg)
            raise SMTPDeliveryError(error_msg) from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except Exception as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def build_mime_message(email: OutboundEmail, from_address: str, from_name: Optional[str] = None) -> EmailMessage:
    """Build a multipart/alternative message with text and HTML parts."""
    message = EmailMessage()
    message["Subject"] = email.subject
    message["From"] = formataddr((from_name, from_address)) if from_name else from_address
    message["To"] = ", ".join(email.to)
    domain = from_address.rsplit("@", 1)[-1] if "@" in from_address else None
    message["Message-ID"] = make_msgid(domain=domain)
    message.set_content(email.text)
    message.add_alternative(email.html, subtype="html")
    return message
