"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class JobName(str, Enum):
    """Scheduled jobs exposed by the service."""

    COMPANY_DOCUMENTS = "company-document-expiry"
    EMPLOYEE_DOCUMENTS = "employee-document-expiry"
    EMPLOYEE_NOTIFICATIONS = "employee-document-notifications"
    ASSET_WARRANTY = "asset-warranty-expiry"
    NOTIFICATION_RETENTION = "notification-retention"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _validate_cron(value: str) -> str:
    stripped = " ".join(value.split())
    if len(stripped.split(" ")) != 5:
        raise ValueError(
            f"schedule must be a 5-field crontab expression (minute hour day month weekday), got: '{value}'"
        )
    return stripped


# Expired documents keep alerting daily for one week, then go quiet.
DEFAULT_EXPIRED_LOOKBACK_DAYS = 7


class ExpiryJobConfig(BaseModel):
    """Alert policy and schedule for one expiry job."""

    enabled: bool = Field(True, description="Whether the scheduler runs this job")
    windows: Tuple[int, ...] = Field(
        ..., description="Exact day counts before expiry on which an alert fires"
    )
    alert_on_expired: bool = Field(
        False, description="Also alert for every record that has already expired"
    )
    expired_lookback_days: Optional[int] = Field(
        DEFAULT_EXPIRED_LOOKBACK_DAYS,
        ge=0,
        description="Ignore records that expired more than this many days ago (null = no bound)",
    )
    schedule: str = Field("0 6 * * *", description="Crontab expression (business timezone)")

    @field_validator("windows", mode="before")
    @classmethod
    def normalize_windows(cls, v):
        """Deduplicate windows and order them from furthest to nearest."""
        if isinstance(v, int):
            v = [v]
        days = []
        for item in v:
            day = int(item)
            if day < 0:
                raise ValueError(f"Alert windows must be non-negative, got: {day}")
            if day not in days:
                days.append(day)
        if not days:
            raise ValueError("At least one alert window is required")
        return tuple(sorted(days, reverse=True))

    @field_validator("schedule")
    @classmethod
    def validate_schedule(cls, v: str) -> str:
        return _validate_cron(v)

    @property
    def max_window(self) -> int:
        """Largest configured window (the scan horizon)."""
        return max(self.windows)

    model_config = {"frozen": True}


class JobsConfig(BaseModel):
    """Per-job policies. Defaults mirror the platform's production settings."""

    company_documents: ExpiryJobConfig = Field(
        default_factory=lambda: ExpiryJobConfig(
            windows=(30, 14, 7), alert_on_expired=True, schedule="0 6 * * *"
        )
    )
    employee_documents: ExpiryJobConfig = Field(
        default_factory=lambda: ExpiryJobConfig(
            windows=(30, 14, 7), alert_on_expired=True, schedule="15 6 * * *"
        )
    )
    employee_notifications: ExpiryJobConfig = Field(
        default_factory=lambda: ExpiryJobConfig(
            windows=(30, 14, 7, 1), alert_on_expired=False, schedule="0 7 * * *"
        )
    )
    asset_warranty: ExpiryJobConfig = Field(
        default_factory=lambda: ExpiryJobConfig(
            windows=(60, 30), alert_on_expired=False, schedule="30 7 * * *"
        )
    )

    @field_validator("asset_warranty")
    @classmethod
    def warranty_has_no_expired_branch(cls, v: ExpiryJobConfig) -> ExpiryJobConfig:
        if v.alert_on_expired:
            raise ValueError("asset_warranty alerts fire on exact windows only; alert_on_expired must be false")
        return v

    @field_validator("employee_notifications")
    @classmethod
    def notifications_skip_expired(cls, v: ExpiryJobConfig) -> ExpiryJobConfig:
        if v.alert_on_expired:
            raise ValueError(
                "employee_notifications covers upcoming expiries only; alert_on_expired must be false"
            )
        return v


class RetentionConfig(BaseModel):
    """Notification retention purge settings (retention days come from the environment)."""

    enabled: bool = Field(True, description="Whether the scheduler runs the purge")
    batch_size: int = Field(1000, ge=1, le=50000, description="Rows deleted per batch")
    schedule: str = Field("0 3 * * *", description="Crontab expression (business timezone)")

    @field_validator("schedule")
    @classmethod
    def validate_schedule(cls, v: str) -> str:
        return _validate_cron(v)


class EmailConfig(BaseModel):
    """Email delivery settings."""

    use_tls: bool = Field(True, description="Upgrade relay connections with STARTTLS when not implicit TLS")
    smtp_timeout: int = Field(30, ge=5, le=300, description="Relay connection timeout (seconds)")
    provider_timeout: int = Field(30, ge=5, le=300, description="Provider API request timeout (seconds)")
    placeholder_domain_suffix: str = Field(
        ".internal", min_length=1, description="Recipient domains with this suffix are never delivered to"
    )
    failure_alert_cooldown_seconds: int = Field(
        300, ge=0, le=86400, description="Suppress identical failure escalations within this period"
    )

    @field_validator("placeholder_domain_suffix")
    @classmethod
    def normalize_suffix(cls, v: str) -> str:
        stripped = v.strip().lower()
        if not stripped:
            raise ValueError("placeholder_domain_suffix cannot be empty")
        return stripped


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="Log output format (json or key-value)")

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object. Every section has defaults, so the YAML file is optional."""

    jobs: JobsConfig = Field(default_factory=JobsConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def job_config(self, name: JobName) -> ExpiryJobConfig:
        """Return the policy for an expiry job."""
        mapping = {
            JobName.COMPANY_DOCUMENTS: self.jobs.company_documents,
            JobName.EMPLOYEE_DOCUMENTS: self.jobs.employee_documents,
            JobName.EMPLOYEE_NOTIFICATIONS: self.jobs.employee_notifications,
            JobName.ASSET_WARRANTY: self.jobs.asset_warranty,
        }
        if name not in mapping:
            raise KeyError(f"{name} is not an expiry job")
        return mapping[name]

    def enabled_jobs(self) -> List[JobName]:
        """Jobs the scheduler should register, in execution order."""
        names = [
            name
            for name in (
                JobName.COMPANY_DOCUMENTS,
                JobName.EMPLOYEE_DOCUMENTS,
                JobName.EMPLOYEE_NOTIFICATIONS,
                JobName.ASSET_WARRANTY,
            )
            if self.job_config(name).enabled
        ]
        if self.retention.enabled:
            names.append(JobName.NOTIFICATION_RETENTION)
        return names
