"""Job status → phase classification.

A job carries a free-text ``status`` (legacy imports, UI dropdowns and the
mobile app all write different spellings) and a denormalized ``phase`` used by
the dashboard gauges. Every spelling is first normalized to a canonical
:class:`JobStatus`, then bucketed into one of seven :class:`JobPhase` values.

There is exactly one alias table. Unknown or empty statuses resolve to
``JobPhase.PENDING``; callers that need to tell "unknown" apart from a real
pending status use :func:`is_known_status`.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional


class JobPhase(str, Enum):
    PENDING = "pending"
    QUOTING = "quoting"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    INVOICING = "invoicing"
    PAID = "paid"


class JobStatus(str, Enum):
    DRAFT = "draft"
    NEW = "new"
    NEEDS_QUOTE = "needs_quote"

    QUOTE_PREPARING = "quote_preparing"
    QUOTE_SENT = "quote_sent"
    QUOTE_VIEWED = "quote_viewed"
    QUOTE_ACCEPTED = "quote_accepted"
    QUOTE_DECLINED = "quote_declined"

    SCHEDULED = "scheduled"
    ASSIGNED = "assigned"

    IN_PROGRESS = "in_progress"
    ON_SITE = "on_site"
    WORKING = "working"
    WAITING_PARTS = "waiting_parts"

    COMPLETED = "completed"
    READY_TO_INVOICE = "ready_to_invoice"

    INVOICE_DRAFT = "invoice_draft"
    INVOICE_SENT = "invoice_sent"
    AWAITING_PAYMENT = "awaiting_payment"

    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    OVERDUE = "overdue"


DEFAULT_PHASE = JobPhase.PENDING
VALID_PHASES = tuple(phase.value for phase in JobPhase)

_STATUSES_BY_PHASE: Dict[JobPhase, List[JobStatus]] = {
    JobPhase.PENDING: [JobStatus.DRAFT, JobStatus.NEW, JobStatus.NEEDS_QUOTE],
    JobPhase.QUOTING: [
        JobStatus.QUOTE_PREPARING,
        JobStatus.QUOTE_SENT,
        JobStatus.QUOTE_VIEWED,
        JobStatus.QUOTE_ACCEPTED,
        JobStatus.QUOTE_DECLINED,
    ],
    JobPhase.SCHEDULED: [JobStatus.SCHEDULED, JobStatus.ASSIGNED],
    JobPhase.IN_PROGRESS: [
        JobStatus.IN_PROGRESS,
        JobStatus.ON_SITE,
        JobStatus.WORKING,
        JobStatus.WAITING_PARTS,
    ],
    JobPhase.COMPLETED: [JobStatus.COMPLETED, JobStatus.READY_TO_INVOICE],
    JobPhase.INVOICING: [
        JobStatus.INVOICE_DRAFT,
        JobStatus.INVOICE_SENT,
        JobStatus.AWAITING_PAYMENT,
    ],
    JobPhase.PAID: [JobStatus.PAID, JobStatus.PARTIALLY_PAID, JobStatus.OVERDUE],
}

_PHASE_BY_STATUS: Dict[JobStatus, JobPhase] = {
    status: phase for phase, statuses in _STATUSES_BY_PHASE.items() for status in statuses
}

# Legacy and free-text spellings. Canonical values are added below.
_STATUS_ALIASES: Dict[str, JobStatus] = {
    "start": JobStatus.NEW,
    "needs quote": JobStatus.NEEDS_QUOTE,
    "pending": JobStatus.NEEDS_QUOTE,
    "pricing": JobStatus.QUOTE_PREPARING,
    "quoting": JobStatus.QUOTE_PREPARING,
    "quote": JobStatus.QUOTE_PREPARING,
    "estimate": JobStatus.QUOTE_PREPARING,
    "quote preparing": JobStatus.QUOTE_PREPARING,
    "quote sent": JobStatus.QUOTE_SENT,
    "quotesent": JobStatus.QUOTE_SENT,
    "quote viewed": JobStatus.QUOTE_VIEWED,
    "quote accepted": JobStatus.QUOTE_ACCEPTED,
    "quoteaccepted": JobStatus.QUOTE_ACCEPTED,
    "quote declined": JobStatus.QUOTE_DECLINED,
    "scheduling": JobStatus.SCHEDULED,
    "schedule": JobStatus.SCHEDULED,
    "in progress": JobStatus.IN_PROGRESS,
    "inprogress": JobStatus.IN_PROGRESS,
    "active": JobStatus.IN_PROGRESS,
    "on site": JobStatus.ON_SITE,
    "waiting parts": JobStatus.WAITING_PARTS,
    "complete": JobStatus.COMPLETED,
    "back_costing": JobStatus.COMPLETED,
    "back costing": JobStatus.COMPLETED,
    "need to return": JobStatus.COMPLETED,
    "return": JobStatus.COMPLETED,
    "ready to invoice": JobStatus.READY_TO_INVOICE,
    "invoice": JobStatus.INVOICE_SENT,
    "invoicing": JobStatus.INVOICE_SENT,
    "invoiced": JobStatus.INVOICE_SENT,
    "invoice draft": JobStatus.INVOICE_DRAFT,
    "invoice sent": JobStatus.INVOICE_SENT,
    "awaiting payment": JobStatus.AWAITING_PAYMENT,
    "payment": JobStatus.PAID,
    "partially paid": JobStatus.PARTIALLY_PAID,
}
_STATUS_ALIASES.update({status.value: status for status in JobStatus})

_STATUS_LABELS: Dict[JobStatus, str] = {
    JobStatus.DRAFT: "Draft",
    JobStatus.NEW: "New Request",
    JobStatus.NEEDS_QUOTE: "To Quote",
    JobStatus.QUOTE_PREPARING: "Quote Preparing",
    JobStatus.QUOTE_SENT: "Quote Sent",
    JobStatus.QUOTE_VIEWED: "Quote Viewed",
    JobStatus.QUOTE_ACCEPTED: "Quote Accepted",
    JobStatus.QUOTE_DECLINED: "Quote Declined",
    JobStatus.SCHEDULED: "Scheduled",
    JobStatus.ASSIGNED: "Assigned",
    JobStatus.IN_PROGRESS: "In Progress",
    JobStatus.ON_SITE: "On Site",
    JobStatus.WORKING: "Working",
    JobStatus.WAITING_PARTS: "Waiting Parts",
    JobStatus.COMPLETED: "Completed",
    JobStatus.READY_TO_INVOICE: "Ready to Invoice",
    JobStatus.INVOICE_DRAFT: "Invoice Draft",
    JobStatus.INVOICE_SENT: "Invoice Sent",
    JobStatus.AWAITING_PAYMENT: "Awaiting Payment",
    JobStatus.PAID: "Paid",
    JobStatus.PARTIALLY_PAID: "Partially Paid",
    JobStatus.OVERDUE: "Overdue",
}

_PHASE_LABELS: Dict[JobPhase, str] = {
    JobPhase.PENDING: "Pending",
    JobPhase.QUOTING: "Quoting",
    JobPhase.SCHEDULED: "Scheduled",
    JobPhase.IN_PROGRESS: "In Progress",
    JobPhase.COMPLETED: "Completed",
    JobPhase.INVOICING: "Invoicing",
    JobPhase.PAID: "Paid",
}

_PHASE_DESCRIPTIONS: Dict[JobPhase, str] = {
    JobPhase.PENDING: "Jobs awaiting quotes (draft, new, needs quote)",
    JobPhase.QUOTING: "Jobs currently in quote process",
    JobPhase.SCHEDULED: "Jobs booked but not started",
    JobPhase.IN_PROGRESS: "Jobs currently being worked on",
    JobPhase.COMPLETED: "Jobs finished and ready to invoice",
    JobPhase.INVOICING: "Invoices sent and awaiting payment",
    JobPhase.PAID: "Jobs fully paid",
}


def _clean(raw_status: object) -> str:
    if raw_status is None:
        return ""
    if isinstance(raw_status, Enum):
        raw_status = raw_status.value
    return str(raw_status).strip().lower()


def normalize_job_status(raw_status: object) -> Optional[JobStatus]:
    """Return the canonical status for ``raw_status`` or ``None`` when unknown."""
    return _STATUS_ALIASES.get(_clean(raw_status))


def is_known_status(raw_status: object) -> bool:
    return normalize_job_status(raw_status) is not None


def phase_from_status(status: JobStatus) -> JobPhase:
    return _PHASE_BY_STATUS[status]


def map_status_to_phase(raw_status: object) -> JobPhase:
    status = normalize_job_status(raw_status)
    if status is None:
        return DEFAULT_PHASE
    return phase_from_status(status)


def parse_phase(value: object) -> Optional[JobPhase]:
    cleaned = _clean(value)
    try:
        return JobPhase(cleaned)
    except ValueError:
        return None


def statuses_for_phase(phase: JobPhase) -> List[JobStatus]:
    return list(_STATUSES_BY_PHASE.get(phase, []))


def status_label(status: JobStatus) -> str:
    return _STATUS_LABELS.get(status, status.value)


def phase_label(phase: JobPhase) -> str:
    return _PHASE_LABELS.get(phase, phase.value)


def phase_description(phase: JobPhase) -> str:
    return _PHASE_DESCRIPTIONS.get(phase, "")


def aliases_for_status(status: JobStatus) -> List[str]:
    return sorted(alias for alias, target in _STATUS_ALIASES.items() if target is status)
