"""Exceptions for the notification layer.

The sender converts every DeliveryError into a DeliveryOutcome; these
exceptions only travel between the transport clients and the sender.
"""


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class DeliveryError(NotificationError):
    """Raised by a transport when a message could not be handed off.

    ``code`` carries a transport-specific error code when one is known
    (an SMTP reply code or an HTTP status).
    """

    def __init__(self, message: str, code=None):
        super().__init__(message)
        self.code = code


class SMTPDeliveryError(DeliveryError):
    """Raised when a tenant relay rejects or cannot accept a message."""

    pass


class ProviderDeliveryError(DeliveryError):
    """Raised when the managed email provider rejects a request."""

    pass
