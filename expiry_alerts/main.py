"""Main entry point for the expiry alerts service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import signal
import sys
import threading
import time
from functools import partial
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from expiry_alerts.config.environment import EnvironmentConfig
from expiry_alerts.config.exceptions import ConfigurationError
from expiry_alerts.config.loader import load_config
from expiry_alerts.config.models import AppConfig, JobName
from expiry_alerts.jobs import JobRunResult, run_jobs
from expiry_alerts.logging import get_logger
from expiry_alerts.logging.config import configure_logging
from expiry_alerts.notifications.failures import FailureCooldown
from expiry_alerts.persistence.database import Database
from expiry_alerts.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")

ALL_JOBS = "all"


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Log level priority: CLI > environment > config file > INFO.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif env_config.log_level:
        pass
    elif app_config.logging and app_config.logging.level:
        env_config.log_level = app_config.logging.level
    else:
        env_config.log_level = "INFO"

    return app_config, env_config


def resolve_job_names(job: str, app_config: AppConfig) -> List[JobName]:
    """Jobs selected on the command line.

    ``all`` means every enabled job. A named job runs even when disabled in
    the config file; disabling only affects the scheduler.
    """
    if job == ALL_JOBS:
        return app_config.enabled_jobs()
    return [JobName(job)]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="expiry-alerts",
        description="Expiry alerts - scheduled document and warranty expiry notifications",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present, else built-in defaults)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run one job (or all enabled jobs) once and exit")
    run_parser.add_argument(
        "job",
        choices=[name.value for name in JobName] + [ALL_JOBS],
        help="Job to run",
    )
    run_parser.add_argument(
        "--tenant",
        default=None,
        help="Restrict the run to a single active tenant id",
    )

    subparsers.add_parser("daemon", help="Run enabled jobs on their cron schedules (default)")
    return parser


def execute_once(
    job_names: Sequence[JobName],
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    tenant_id: Optional[str] = None,
) -> int:
    """Run the selected jobs once and return the process exit code."""
    results = run_jobs(job_names, app_config, env_config, tenant_id=tenant_id)

    for result in results:
        logger.info(
            f"Job {result.job} finished: "
            f"{result.checked} checked, "
            f"{result.alerted} alerted, "
            f"{result.sent} sent, "
            f"{result.admin_sent} admin, "
            f"{result.failed} failed",
            extra={
                "event": "service.run.completed",
                "aborted": result.aborted,
                "had_errors": result.had_errors,
                "skipped_run": result.skipped_run,
                **result.summary(),
            },
        )

    # Per-tenant failures are reported in the summary; only an aborted run fails the process.
    return 1 if any(result.aborted for result in results) else 0


def scheduled_run(
    name: JobName,
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    database: Database,
    failure_cooldown: Optional[FailureCooldown] = None,
) -> Optional[JobRunResult]:
    """Scheduler callback. Each firing gets its own clock and provider session."""
    results = run_jobs(
        [name], app_config, env_config, database=database, failure_cooldown=failure_cooldown
    )
    return results[0] if results else None


def build_scheduler(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    database: Database,
    shutdown_event: Optional[threading.Event] = None,
) -> SchedulerService:
    """Register every enabled job on its cron schedule."""
    scheduler_service = SchedulerService(
        timezone_name=env_config.business_timezone,
        shutdown_event=shutdown_event,
    )
    # Failure suppression is process-wide, like the scheduler itself.
    failure_cooldown = FailureCooldown(app_config.email.failure_alert_cooldown_seconds)
    for name in app_config.enabled_jobs():
        if name == JobName.NOTIFICATION_RETENTION:
            schedule = app_config.retention.schedule
        else:
            schedule = app_config.job_config(name).schedule
        scheduler_service.register(
            name.value,
            partial(scheduled_run, name, app_config, env_config, database, failure_cooldown),
            schedule,
        )
    return scheduler_service


def run_daemon(app_config: AppConfig, env_config: EnvironmentConfig) -> int:
    """Run the scheduler until a signal arrives."""
    shutdown_event = threading.Event()
    database = Database(env_config.database_url)
    scheduler_service = build_scheduler(app_config, env_config, database, shutdown_event)

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum}
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started", "jobs": scheduler_service.job_ids}
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        logger.info(
            "Keyboard interrupt received, shutting down",
            extra={"event": "service.keyboard_interrupt"}
        )
        scheduler_service.shutdown(wait=False)
    finally:
        database.close()

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the expiry alerts service.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)
    command = args.command or "daemon"

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        logger.info(
            "Expiry alerts starting",
            extra={
                "event": "service.starting",
                "command": command,
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "business_timezone": env_config.business_timezone,
                "development_mode": env_config.is_development,
            },
        )

        if command == "run":
            exit_code = execute_once(
                resolve_job_names(args.job, app_config),
                app_config,
                env_config,
                tenant_id=args.tenant,
            )
        else:
            exit_code = run_daemon(app_config, env_config)

        logger.info(
            "Expiry alerts stopped",
            extra={
                "event": "service.stopping",
                "exit_code": exit_code,
                "uptime_seconds": round(time.time() - start_time, 2),
            },
        )
        return exit_code

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"}
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True
        )
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
