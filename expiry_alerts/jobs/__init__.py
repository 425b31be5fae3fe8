"""Scheduled expiry jobs and the retention purge."""

from .asset_warranty import AssetWarrantyExpiryJob
from .base import ExpiryJob, enumerate_tenants
from .company_documents import CompanyDocumentExpiryJob
from .employee_documents import EmployeeDocumentExpiryJob
from .employee_notifications import EmployeeDocumentNotificationJob
from .models import JobRunResult, TenantRunStats
from .registry import EXPIRY_JOBS, JobRuntime, parse_job_name, run_job, run_jobs
from .retention import RetentionJob, RetentionPurger

__all__ = [
    "ExpiryJob",
    "CompanyDocumentExpiryJob",
    "EmployeeDocumentExpiryJob",
    "EmployeeDocumentNotificationJob",
    "AssetWarrantyExpiryJob",
    "RetentionJob",
    "RetentionPurger",
    "JobRunResult",
    "TenantRunStats",
    "JobRuntime",
    "EXPIRY_JOBS",
    "enumerate_tenants",
    "parse_job_name",
    "run_job",
    "run_jobs",
]
