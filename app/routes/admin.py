from fastapi import APIRouter, Depends

from app.core.features import SubscriptionStatus, ToolType
from app.dependencies.access import require_admin
from app.dependencies.services import Services, get_services
from app.models.user import User

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.get("/overview")
def admin_overview(
    current_user: User = Depends(require_admin),
    services: Services = Depends(get_services),
):
    store = services.store
    by_status = store.count_subscriptions_by_status()
    by_tool = store.count_generations_by_tool()
    return {
        "users": store.count_users(),
        "subscriptions": {status.value: by_status.get(status.value, 0) for status in SubscriptionStatus},
        "toolUsage": {tool.value: by_tool.get(tool.value, 0) for tool in ToolType},
        "historyRecords": store.count_history(),
    }
