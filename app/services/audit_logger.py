from __future__ import annotations

from fastapi import Request

from app.models.audit_log import AuditLog
from app.services.store import RecordStore


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def create_audit_log(
    store: RecordStore,
    event_type: str,
    event_description: str,
    request: Request | None = None,
    user_id: int | None = None,
) -> AuditLog:
    if request is None:
        return store.add_audit_log(
            event_type=event_type,
            event_description=event_description,
            user_id=user_id,
        )

    request_id = getattr(request.state, "request_id", None)
    if request_id:
        event_description = f"{event_description} request_id={request_id}"

    return store.add_audit_log(
        event_type=event_type,
        event_description=event_description,
        user_id=user_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
