"""Expiry detection: day arithmetic, candidate scanning, gating and recipients."""

from .clock import BusinessClock, classify, days_remaining, to_business_date
from .gate import AlertGate
from .recipients import RecipientResolver
from .scanner import TenantScanner

__all__ = [
    "BusinessClock",
    "classify",
    "days_remaining",
    "to_business_date",
    "AlertGate",
    "RecipientResolver",
    "TenantScanner",
]
