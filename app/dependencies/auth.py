from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import AuthenticationRequired
from app.dependencies.services import Services, get_services
from app.models.user import User
from app.services.audit_logger import create_audit_log

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    services: Services = Depends(get_services),
) -> User:
    """
    Verify the bearer token and return the matching user.

    The first verified request for an email creates the user, which starts
    its trial.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired()

    claims = services.identity.verify(credentials.credentials)
    user, created = services.store.find_or_create_user(
        email=claims.email,
        display_name=claims.name,
        photo_url=claims.picture,
        auth_provider=claims.provider,
        provider_id=claims.subject,
    )
    if created:
        create_audit_log(
            services.store,
            event_type="USER_CREATED",
            event_description=f"user_id={user.id} provider={user.auth_provider}",
            request=request,
            user_id=user.id,
        )

    request.state.user = user
    return user
