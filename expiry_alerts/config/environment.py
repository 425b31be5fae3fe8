"""Environment variable loading and validation."""

import os
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/expiry_alerts.db"
DEFAULT_PROVIDER_URL = "https://api.resend.com/emails"
DEFAULT_RETENTION_DAYS = 90


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        admin_notification_emails: Optional[List[str]] = None,
        email_provider_api_key: Optional[str] = None,
        email_provider_url: Optional[str] = None,
        email_from: Optional[str] = None,
        email_from_name: Optional[str] = None,
        app_domain: Optional[str] = None,
        super_admin_email: Optional[str] = None,
        smtp_encryption_key: Optional[str] = None,
        business_timezone: str = "UTC",
        log_level: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        """Initialize environment configuration."""
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.retention_days = retention_days
        self.admin_notification_emails = list(admin_notification_emails or [])
        self.email_provider_api_key = email_provider_api_key
        self.email_provider_url = email_provider_url or DEFAULT_PROVIDER_URL
        self.app_domain = app_domain or "localhost:3000"
        self.email_from = email_from or f"noreply@{self.app_domain.split(':')[0]}"
        self.email_from_name = email_from_name or "Expiry Alerts"
        self.super_admin_email = super_admin_email
        self.smtp_encryption_key = smtp_encryption_key
        self.business_timezone = business_timezone
        self.log_level = log_level
        self.environment = environment or "local"

    @property
    def is_development(self) -> bool:
        """True when no provider key is configured (sends are skipped)."""
        return not self.email_provider_api_key

    def tenant_portal_url(self, slug: str, path: str = "") -> str:
        """Build the tenant-subdomain URL embedded in email bodies."""
        protocol = "http" if "localhost" in self.app_domain else "https"
        return f"{protocol}://{slug}.{self.app_domain}{path}"

    def platform_url(self, path: str = "") -> str:
        protocol = "http" if "localhost" in self.app_domain else "https"
        return f"{protocol}://{self.app_domain}{path}"


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    All variables are optional; missing values fall back to development
    defaults so a job can run locally without sending anything.

    - DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/expiry_alerts.db)
    - NOTIFICATION_RETENTION_DAYS: Age in days after which notifications are purged (default 90)
    - ADMIN_NOTIFICATION_EMAILS: Comma-separated recipients for single-tenant warranty runs
    - EMAIL_PROVIDER_API_KEY: Transactional email provider key (absent = dev mode)
    - EMAIL_PROVIDER_URL: Provider send endpoint
    - EMAIL_FROM / EMAIL_FROM_NAME: Platform sender identity
    - APP_DOMAIN: Base domain used for tenant-subdomain links
    - SUPER_ADMIN_EMAIL: Escalation address for delivery failures
    - SMTP_ENCRYPTION_KEY: Key used to decrypt stored tenant relay secrets
    - BUSINESS_TIMEZONE: IANA zone in which "today" is evaluated (default UTC)
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - ENVIRONMENT: Environment label attached to logs

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If any variable is malformed
    """
    errors = []

    retention_days = DEFAULT_RETENTION_DAYS
    retention_str = os.getenv("NOTIFICATION_RETENTION_DAYS")
    if retention_str:
        try:
            retention_days = int(retention_str)
            if retention_days < 1:
                errors.append(
                    f"Invalid NOTIFICATION_RETENTION_DAYS: {retention_days}. Must be at least 1."
                )
        except ValueError:
            errors.append(
                f"Invalid NOTIFICATION_RETENTION_DAYS: '{retention_str}'. Must be a valid integer."
            )

    admin_emails: List[str] = []
    admin_str = os.getenv("ADMIN_NOTIFICATION_EMAILS")
    if admin_str:
        for raw in admin_str.split(","):
            address = raw.strip()
            if not address:
                continue
            normalized = _normalize_email(address)
            if normalized is None:
                errors.append(f"Invalid email address in ADMIN_NOTIFICATION_EMAILS: '{address}'")
            else:
                admin_emails.append(normalized)

    email_from = os.getenv("EMAIL_FROM")
    if email_from and _normalize_email(email_from) is None:
        errors.append(f"Invalid EMAIL_FROM: '{email_from}'")

    super_admin_email = os.getenv("SUPER_ADMIN_EMAIL")
    if super_admin_email and _normalize_email(super_admin_email) is None:
        errors.append(f"Invalid SUPER_ADMIN_EMAIL: '{super_admin_email}'")

    business_timezone = os.getenv("BUSINESS_TIMEZONE") or "UTC"
    try:
        ZoneInfo(business_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"Unknown BUSINESS_TIMEZONE: '{business_timezone}'")

    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )
        else:
            log_level = log_level.upper()

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and review the values",
                "Check that email addresses are valid",
                "Use an IANA zone name such as 'Asia/Qatar' for BUSINESS_TIMEZONE",
            ],
        )

    return EnvironmentConfig(
        database_url=os.getenv("DATABASE_URL"),
        retention_days=retention_days,
        admin_notification_emails=admin_emails,
        email_provider_api_key=os.getenv("EMAIL_PROVIDER_API_KEY") or None,
        email_provider_url=os.getenv("EMAIL_PROVIDER_URL"),
        email_from=email_from,
        email_from_name=os.getenv("EMAIL_FROM_NAME"),
        app_domain=os.getenv("APP_DOMAIN"),
        super_admin_email=super_admin_email,
        smtp_encryption_key=os.getenv("SMTP_ENCRYPTION_KEY") or None,
        business_timezone=business_timezone,
        log_level=log_level,
        environment=os.getenv("ENVIRONMENT"),
    )


def _normalize_email(address: str) -> Optional[str]:
    try:
        return validate_email(address, check_deliverability=False).normalized
    except EmailNotValidError:
        return None
