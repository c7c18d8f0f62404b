import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from app.core.features import ExportFormat, Feature
from app.dependencies.access import require_pro
from app.dependencies.services import Services, get_services
from app.models.user import User
from app.schemas.tools import NotionExportRequest
from app.services.tool_gateway import validate_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/export", tags=["Export"])


@router.post("/notion")
def export_to_notion(
    payload: Any = Body(default=None),
    current_user: User = Depends(require_pro(Feature.NOTION_EXPORT)),
    services: Services = Depends(get_services),
):
    request = validate_payload(NotionExportRequest, payload)
    # Rejects unknown tool types before anything reaches Notion.
    tool_type = services.gateway.parse_tool(request.toolType)

    page_url = services.exporter.export(
        token=request.notionToken,
        parent_id=request.databaseId,
        title=request.title,
        content=request.content,
        tool_type=tool_type.value,
        parent_type=request.parentType,
    )
    history_id = services.gateway.record_export(
        user_id=current_user.id,
        tool_type=tool_type,
        format=ExportFormat.NOTION,
        content={"title": request.title, "content": request.content},
        page_url=page_url,
    )
    logger.info("notion_export_completed user_id=%s history_id=%s", current_user.id, history_id)
    return {"success": True, "historyId": history_id, "pageUrl": page_url}
