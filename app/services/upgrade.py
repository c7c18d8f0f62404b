from __future__ import annotations

import logging
from typing import Any

from app.core.features import FEATURE_BENEFITS, PLAN_FREE, PLAN_PRO, Feature
from app.services.entitlement import EntitlementDecision

logger = logging.getLogger(__name__)

_DEFAULT_BENEFITS = ["Every Lyra tool and export without limits"]


def _known_feature(name: str | None) -> Feature | None:
    try:
        return Feature(name)
    except ValueError:
        return None


def build_upgrade_response(
    user: Any,
    reason: str,
    feature: Feature | str | None = None,
    decision: EntitlementDecision | None = None,
    endpoint: str | None = None,
) -> dict[str, Any]:
    feature_name = feature.value if isinstance(feature, Feature) else (str(feature) if feature else None)
    benefits = FEATURE_BENEFITS.get(_known_feature(feature_name), _DEFAULT_BENEFITS)
    resolved_endpoint = endpoint or "unknown"

    logger.info(
        "upgrade_required user_id=%s feature=%s endpoint=%s reason=%s",
        getattr(user, "id", None),
        feature_name or "UNKNOWN",
        resolved_endpoint,
        reason,
    )

    return {
        "error": {
            "code": "UPGRADE_REQUIRED",
            "message": "Upgrade required",
            "reason": reason,
            "feature": feature_name,
            "current_plan": PLAN_PRO if decision and decision.is_pro else PLAN_FREE,
            "endpoint": resolved_endpoint,
            "recommended_plan": PLAN_PRO,
            "benefits": benefits,
            "trialDaysLeft": decision.trial_days_left if decision else 0,
        }
    }
