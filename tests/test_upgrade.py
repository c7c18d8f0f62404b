"""Tests for the 403 upgrade payload."""

from types import SimpleNamespace
from unittest.mock import patch

from app.core.features import FEATURE_BENEFITS, Feature
from app.services.upgrade import build_upgrade_response

USER = SimpleNamespace(id=7)


class TestUpgradeResponse:
    def test_feature_benefits(self):
        body = build_upgrade_response(USER, "trial_expired", Feature.NOTION_EXPORT, endpoint="/api/export/notion")

        error = body["error"]
        assert error["code"] == "UPGRADE_REQUIRED"
        assert error["feature"] == "NOTION_EXPORT"
        assert error["benefits"] == FEATURE_BENEFITS[Feature.NOTION_EXPORT]
        assert error["current_plan"] == "free"
        assert error["trialDaysLeft"] == 0

    def test_feature_without_benefits_entry(self):
        with patch.dict("app.services.upgrade.FEATURE_BENEFITS", {}, clear=True):
            body = build_upgrade_response(USER, "trial_expired", Feature.PRO_TOOL)

        assert body["error"]["feature"] == "PRO_TOOL"
        assert body["error"]["benefits"] == ["Every Lyra tool and export without limits"]

    def test_unknown_or_missing_feature(self):
        unknown = build_upgrade_response(USER, "trial_expired", "SOMETHING_ELSE")
        missing = build_upgrade_response(USER, "trial_expired")

        assert unknown["error"]["benefits"] == ["Every Lyra tool and export without limits"]
        assert missing["error"]["feature"] is None
        assert missing["error"]["endpoint"] == "unknown"
