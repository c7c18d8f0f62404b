from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from app.core.features import Feature, ToolType
from app.dependencies.access import ensure_pro
from app.dependencies.auth import get_current_user
from app.dependencies.services import Services, get_services
from app.models.user import User
from app.schemas.tools import ToolResponse

router = APIRouter(prefix="/api/tools", tags=["Tools"])


@router.post("/{tool_type}", response_model=ToolResponse)
def invoke_tool(
    tool_type: str,
    request: Request,
    payload: Any = Body(default=None),
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    try:
        tool = ToolType(tool_type.lower())
    except ValueError:
        raise HTTPException(
            status_code=404,
            detail={"error": {"code": "NOT_FOUND", "message": f"Unknown tool: {tool_type}"}},
        )

    if tool.value in services.settings.pro_only_tools:
        ensure_pro(request, services, current_user, Feature.PRO_TOOL)

    result = services.gateway.invoke(tool, current_user.id, payload)
    return ToolResponse(text=result.text, generationTime=result.generation_time)
