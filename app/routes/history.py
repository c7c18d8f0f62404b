from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from app.core.errors import InvalidInput
from app.core.features import parse_tool_type
from app.dependencies.auth import get_current_user
from app.dependencies.services import Services, get_services
from app.models.tool_history import ToolHistory
from app.models.user import User
from app.services.store import as_utc

router = APIRouter(prefix="/api/history", tags=["History"])


def serialize_history(record: ToolHistory) -> dict:
    # input and metadata stay in their stored JSON text form
    created_at = as_utc(record.created_at)
    return {
        "id": record.id,
        "userId": record.user_id,
        "toolType": record.tool_type,
        "action": record.action,
        "format": record.format,
        "input": record.input,
        "output": record.output,
        "generationTime": record.generation_time,
        "metadata": record.metadata_json,
        "createdAt": created_at.isoformat() if created_at else None,
    }


@router.get("")
def list_history(
    tool: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    tool_type = None
    if tool:
        try:
            tool_type = parse_tool_type(tool).value
        except ValueError:
            raise InvalidInput(f"Unknown tool type: {tool}", fields=["tool"])

    records = services.store.list_history(current_user.id, tool_type=tool_type)
    return {"history": [serialize_history(record) for record in records]}


@router.get("/{history_id}")
def get_history(
    history_id: int,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    record = services.store.get_history(current_user.id, history_id)
    return serialize_history(record)


@router.post("")
def record_export(
    payload: Any = Body(default=None),
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    history_id = services.gateway.record_export_request(current_user.id, payload)
    return {"success": True, "historyId": history_id}
