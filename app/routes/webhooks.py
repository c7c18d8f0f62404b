from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Request

from app.core.errors import InvalidInput
from app.dependencies.services import Services, get_services

router = APIRouter(prefix="/api/public/webhooks", tags=["Webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    services: Services = Depends(get_services),
):
    raw_body = await request.body()
    services.subscriptions.verify_signature(raw_body, request.headers.get("stripe-signature"))

    try:
        event = json.loads(raw_body)
    except ValueError:
        raise InvalidInput("Invalid JSON payload")
    if not isinstance(event, dict):
        raise InvalidInput("Invalid JSON payload")

    return services.subscriptions.handle_event(event, request=request)
