from fastapi import APIRouter, Depends, Request

from app.dependencies.auth import get_current_user
from app.dependencies.services import Services, get_services
from app.models.user import User

router = APIRouter(prefix="/api", tags=["Subscription"])


@router.get("/subscription")
def get_subscription(
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    decision = services.resolver.resolve(current_user.id)
    return decision.to_response()


@router.post("/create-subscription")
def create_subscription(
    request: Request,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    return services.subscriptions.create_subscription(current_user.id, request=request)
