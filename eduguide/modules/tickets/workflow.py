"""Ticket state machine rules: statuses, source-record mappings, SLA and escalation."""

from datetime import datetime, timedelta

TICKET_STATUSES = ("new", "assigned", "in_progress", "waiting_on_student", "resolved", "closed")
OPEN_STATUSES = ("new", "assigned", "in_progress", "waiting_on_student")
PRIORITIES = ("low", "medium", "high", "urgent")
SOURCE_TYPES = ("manual", "tutoring_request", "support_request")
ASSIGNABLE_TEAMS = ("tutor", "support")
VISIBILITIES = ("public", "internal")

DOWNLOAD_URL_TTL_SECONDS = 60 * 10
UPLOAD_URL_TTL_SECONDS = 60 * 60 * 2

# (first response, resolution) in hours
SLA_HOURS = {
    "urgent": (1, 4),
    "high": (4, 24),
    "medium": (8, 48),
    "low": (24, 72),
}

def coerce_priority(value) -> str:
    return value if value in PRIORITIES else "medium"

def status_after_assignment(current: str) -> str:
    # assignment only moves a ticket out of "new"; it never rewinds or revives one
    return "assigned" if current == "new" else current

def lifecycle_stamps(status: str, now: datetime) -> dict:
    if status == "resolved":
        return {"resolved_at": now}
    if status == "closed":
        return {"closed_at": now}
    return {}

def tutoring_status_for(ticket_status: str) -> str:
    if ticket_status == "assigned":
        return "assigned"
    if ticket_status in ("in_progress", "waiting_on_student"):
        return "in_progress"
    if ticket_status in ("resolved", "closed"):
        return "completed"
    return "new"

def support_status_for(ticket_status: str) -> str:
    if ticket_status in ("assigned", "in_progress", "waiting_on_student"):
        return "in_progress"
    if ticket_status == "resolved":
        return "resolved"
    if ticket_status == "closed":
        return "closed"
    return "new"

def sla_due_dates(priority: str, start: datetime) -> tuple[datetime, datetime]:
    respond_h, resolve_h = SLA_HOURS[coerce_priority(priority)]
    return start + timedelta(hours=respond_h), start + timedelta(hours=resolve_h)

def escalated_priority(priority: str) -> str:
    idx = PRIORITIES.index(coerce_priority(priority))
    return PRIORITIES[min(idx + 1, len(PRIORITIES) - 1)]
