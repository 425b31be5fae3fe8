"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

# Alerts further out than this are almost always a typo (days vs weeks).
MAX_REASONABLE_WINDOW = 365


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check raw configuration for suspicious but valid settings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    jobs = config_dict.get("jobs") or {}
    if isinstance(jobs, dict):
        for job_key, job in jobs.items():
            if not isinstance(job, dict):
                continue
            if job.get("enabled") is False:
                warning_messages.append(f"Job '{job_key}' is disabled and will not be scheduled")

            windows = job.get("windows") or []
            if isinstance(windows, list):
                numeric = [w for w in windows if isinstance(w, int)]
                if len(numeric) != len(set(numeric)):
                    warning_messages.append(
                        f"Job '{job_key}' lists duplicate windows; duplicates are ignored"
                    )
                too_far = sorted(w for w in numeric if w > MAX_REASONABLE_WINDOW)
                if too_far:
                    warning_messages.append(
                        f"Job '{job_key}' has windows beyond {MAX_REASONABLE_WINDOW} days: "
                        f"{', '.join(str(w) for w in too_far)}"
                    )

    retention = config_dict.get("retention") or {}
    if isinstance(retention, dict):
        if retention.get("enabled") is False:
            warning_messages.append("Notification retention purge is disabled; the table will grow unbounded")
        batch_size = retention.get("batch_size")
        if isinstance(batch_size, int) and batch_size > 10000:
            warning_messages.append(
                f"Large retention batch_size ({batch_size}) may hold database locks for a long time"
            )

    email = config_dict.get("email") or {}
    if isinstance(email, dict) and email.get("use_tls") is False:
        warning_messages.append("email.use_tls is false; tenant relay credentials may be sent in clear text")

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
