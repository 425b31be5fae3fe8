"""Job construction and entry points.

``JobRuntime`` builds the clients one invocation needs (database, provider
session, sender, failure handler, clock) and closes them when the
invocation ends. ``run_job`` and ``run_jobs`` are the entry points used by
the CLI and the scheduler.
"""

from typing import Dict, List, Optional, Sequence, Type, Union

from expiry_alerts.alerts.clock import BusinessClock
from expiry_alerts.config.environment import EnvironmentConfig
from expiry_alerts.config.models import AppConfig, JobName
from expiry_alerts.logging import get_logger
from expiry_alerts.notifications.failures import FailureCooldown, FailureHandler
from expiry_alerts.notifications.provider_client import ProviderClient
from expiry_alerts.notifications.sender import EmailSender
from expiry_alerts.notifications.smtp_client import SMTPClient
from expiry_alerts.notifications.templates import TemplateRenderer
from expiry_alerts.persistence.database import Database
from expiry_alerts.utils.timestamps import utc_now

from .asset_warranty import AssetWarrantyExpiryJob
from .base import ExpiryJob
from .company_documents import CompanyDocumentExpiryJob
from .employee_documents import EmployeeDocumentExpiryJob
from .employee_notifications import EmployeeDocumentNotificationJob
from .models import JobRunResult
from .retention import RetentionJob

logger = get_logger(__name__, component="jobs")

EXPIRY_JOBS: Dict[JobName, Type[ExpiryJob]] = {
    JobName.COMPANY_DOCUMENTS: CompanyDocumentExpiryJob,
    JobName.EMPLOYEE_DOCUMENTS: EmployeeDocumentExpiryJob,
    JobName.EMPLOYEE_NOTIFICATIONS: EmployeeDocumentNotificationJob,
    JobName.ASSET_WARRANTY: AssetWarrantyExpiryJob,
}


def parse_job_name(value: Union[str, JobName]) -> JobName:
    """Accept a JobName or its string value.

    Raises:
        ValueError: For an unknown job name
    """
    if isinstance(value, JobName):
        return value
    try:
        return JobName(value)
    except ValueError:
        valid = ", ".join(name.value for name in JobName)
        raise ValueError(f"Unknown job '{value}'. Valid jobs: {valid}") from None


class JobRuntime:
    """Clients scoped to one invocation.

    A ``database`` passed in is borrowed and left open; one built here is
    closed on exit. The same applies to ``provider``.

    Pass a shared ``failure_cooldown`` to keep failure suppression across
    invocations; otherwise each runtime starts with an empty one.
    """

    def __init__(
        self,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        database: Optional[Database] = None,
        clock: Optional[BusinessClock] = None,
        provider: Optional[ProviderClient] = None,
        smtp_client: Optional[SMTPClient] = None,
        failure_cooldown: Optional[FailureCooldown] = None,
    ):
        self.app_config = app_config
        self.env_config = env_config
        self.clock = clock or BusinessClock(env_config.business_timezone)

        self._owns_database = database is None
        self.database = database or Database(env_config.database_url)

        self._owns_provider = provider is None
        if provider is None and env_config.email_provider_api_key:
            provider = ProviderClient(
                api_key=env_config.email_provider_api_key,
                url=env_config.email_provider_url,
                timeout=app_config.email.provider_timeout,
            )
        self.provider = provider

        self.renderer = TemplateRenderer()
        self.sender = EmailSender(
            self.database,
            env_config,
            app_config.email,
            provider=self.provider,
            smtp_client=smtp_client,
        )
        if failure_cooldown is None:
            failure_cooldown = FailureCooldown(app_config.email.failure_alert_cooldown_seconds)
        self.sender.failure_handler = FailureHandler(
            self.database,
            env_config,
            escalate=self.sender.send_platform,
            renderer=self.renderer,
            cooldown=failure_cooldown,
        )

    def build(self, name: JobName) -> Union[ExpiryJob, RetentionJob]:
        if name == JobName.NOTIFICATION_RETENTION:
            return RetentionJob(
                self.database,
                self.clock,
                retention_days=self.env_config.retention_days,
                batch_size=self.app_config.retention.batch_size,
            )

        job_class = EXPIRY_JOBS[name]
        return job_class(
            self.database,
            self.env_config,
            self.app_config.job_config(name),
            self.clock,
            sender=self.sender,
            renderer=self.renderer,
        )

    def close(self) -> None:
        if self._owns_provider and self.provider is not None:
            self.provider.close()
        if self._owns_database:
            self.database.close()

    def __enter__(self) -> "JobRuntime":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def run_job(
    name: Union[str, JobName],
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    tenant_id: Optional[str] = None,
    **runtime_kwargs,
) -> JobRunResult:
    """Run one job with freshly constructed clients.

    Raises:
        ValueError: For an unknown job name
        PersistenceError: If the run fails before its tenant loop
    """
    job_name = parse_job_name(name)
    with JobRuntime(app_config, env_config, **runtime_kwargs) as runtime:
        return runtime.build(job_name).run(tenant_id)


def run_jobs(
    names: Sequence[Union[str, JobName]],
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    tenant_id: Optional[str] = None,
    **runtime_kwargs,
) -> List[JobRunResult]:
    """Run several jobs sharing one runtime (and therefore one clock).

    A job that raises is reported as an aborted result; the remaining jobs
    still run.
    """
    job_names = [parse_job_name(name) for name in names]
    results: List[JobRunResult] = []

    with JobRuntime(app_config, env_config, **runtime_kwargs) as runtime:
        for job_name in job_names:
            started = utc_now()
            try:
                results.append(runtime.build(job_name).run(tenant_id))
            except Exception as e:
                logger.error(
                    f"Job {job_name.value} aborted: {e}",
                    extra={"event": "job.run.failed", "job": job_name.value, "error_type": type(e).__name__},
                    exc_info=True,
                )
                results.append(
                    JobRunResult(
                        job=job_name.value,
                        run_started_at=started,
                        run_finished_at=utc_now(),
                        aborted=True,
                        error_message=str(e),
                    )
                )
    return results
