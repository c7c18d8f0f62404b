from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from app.core.features import Feature
from app.dependencies.auth import get_current_user
from app.dependencies.services import Services, get_services
from app.models.user import User
from app.services.entitlement import EntitlementDecision
from app.services.upgrade import build_upgrade_response

logger = logging.getLogger(__name__)


def ensure_pro(
    request: Request,
    services: Services,
    user: User,
    feature: Feature | str,
) -> EntitlementDecision:
    decision = services.resolver.resolve(user.id)
    if decision.is_pro:
        return decision

    feature_name = feature.value if isinstance(feature, Feature) else str(feature)
    logger.warning(
        "feature_access_denied user_id=%s feature=%s reason=%s path=%s method=%s",
        user.id,
        feature_name,
        decision.reason,
        request.url.path,
        request.method,
    )
    raise HTTPException(
        status_code=403,
        detail=build_upgrade_response(
            user=user,
            reason=decision.reason,
            feature=feature,
            decision=decision,
            endpoint=request.url.path,
        ),
    )


def require_pro(feature: Feature | str):
    def _dependency(
        request: Request,
        current_user: User = Depends(get_current_user),
        services: Services = Depends(get_services),
    ) -> User:
        ensure_pro(request, services, current_user, feature)
        return current_user

    return _dependency


def require_admin(
    request: Request,
    current_user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> User:
    if not services.overrides.is_admin(current_user):
        logger.warning(
            "admin_access_denied user_id=%s path=%s", current_user.id, request.url.path
        )
        raise HTTPException(
            status_code=403,
            detail={"error": {"code": "FORBIDDEN", "message": "Admin access required"}},
        )
    return current_user
