from fastapi import APIRouter, Depends

from app.dependencies.auth import get_current_user
from app.dependencies.services import Services, get_services
from app.models.user import User
from app.services.store import as_utc

router = APIRouter(prefix="/api", tags=["Profile"])


@router.get("/me")
def get_me(
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    trial_ends_at = as_utc(current_user.trial_ends_at)
    created_at = as_utc(current_user.created_at)
    return {
        "id": current_user.id,
        "email": current_user.email,
        "username": current_user.username,
        "displayName": current_user.display_name,
        "photoURL": current_user.photo_url,
        "authProvider": current_user.auth_provider,
        "trialEndsAt": trial_ends_at.isoformat() if trial_ends_at else None,
        "createdAt": created_at.isoformat() if created_at else None,
        "isAdmin": services.overrides.is_admin(current_user),
    }
