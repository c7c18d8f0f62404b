"""
Tool invocation gateway.

All six generation tools share one flow: validate the request body against
the tool's input model, render its prompt, ask the language model for one
completion, then append a history row. Exports are recorded through the same
gateway without touching the model.
"""

from __future__ import annotations

import json
import logging
import math
import time
from typing import Any, Callable, NamedTuple

from pydantic import BaseModel, ValidationError

from app.core.errors import GenerationFailed, InvalidInput
from app.core.features import (
    GENERATION_TEMPERATURE,
    ExportFormat,
    HistoryAction,
    ToolType,
    parse_tool_type,
)
from app.schemas.tools import (
    BriefInput,
    ContractInput,
    EmailInput,
    ExportRecordRequest,
    OnboardingInput,
    PricingInput,
    ProposalInput,
    ToolInput,
)
from app.services import prompts
from app.services.llm import LanguageModelProvider
from app.services.store import RecordStore

logger = logging.getLogger(__name__)


class ToolDefinition(NamedTuple):
    input_model: type[ToolInput]
    build_prompt: Callable[[Any], str]


TOOL_DEFINITIONS: dict[ToolType, ToolDefinition] = {
    ToolType.PROPOSAL: ToolDefinition(ProposalInput, prompts.build_proposal_prompt),
    ToolType.EMAIL: ToolDefinition(EmailInput, prompts.build_email_prompt),
    ToolType.PRICING: ToolDefinition(PricingInput, prompts.build_pricing_prompt),
    ToolType.CONTRACT: ToolDefinition(ContractInput, prompts.build_contract_prompt),
    ToolType.BRIEF: ToolDefinition(BriefInput, prompts.build_brief_prompt),
    ToolType.ONBOARDING: ToolDefinition(OnboardingInput, prompts.build_onboarding_prompt),
}


class ToolResult(NamedTuple):
    text: str
    generation_time: float


def validate_payload(model: type[BaseModel], payload: Any) -> BaseModel:
    """
    Validate a request body, turning pydantic errors into InvalidInput.

    Missing (or blank) required fields are reported together; any other
    problem is reported as an invalid field.
    """
    if not isinstance(payload, dict):
        raise InvalidInput("Request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        missing: list[str] = []
        invalid: list[str] = []
        for error in exc.errors():
            field = str(error["loc"][0]) if error.get("loc") else "body"
            raw = payload.get(field)
            if error["type"] == "missing" or raw is None or (isinstance(raw, str) and not raw.strip()):
                bucket = missing
            else:
                bucket = invalid
            if field not in bucket:
                bucket.append(field)
        if missing:
            raise InvalidInput.missing(missing) from exc
        raise InvalidInput(f"Invalid fields: {', '.join(invalid)}", fields=invalid) from exc


def round_seconds(seconds: float) -> int:
    # Half-up rounding for the archived value.
    return int(math.floor(max(0.0, seconds) + 0.5))


def _parse_tool_type(value: Any) -> ToolType:
    try:
        return parse_tool_type(value)
    except ValueError as exc:
        raise InvalidInput(f"Unknown tool type: {value}", fields=["toolType"]) from exc


class ToolGateway:
    def __init__(
        self,
        store: RecordStore,
        llm: LanguageModelProvider,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.store = store
        self.llm = llm
        self.clock = clock

    def parse_tool(self, tool_type: ToolType | str) -> ToolType:
        return _parse_tool_type(tool_type)

    def invoke(self, tool_type: ToolType | str, user_id: int, payload: Any) -> ToolResult:
        tool = _parse_tool_type(tool_type)
        definition = TOOL_DEFINITIONS[tool]
        data = validate_payload(definition.input_model, payload)

        started = self.clock()
        prompt = definition.build_prompt(data)
        text = self._generate(tool, user_id, prompt)
        elapsed = max(0.0, self.clock() - started)

        self._record_generation(tool, user_id, data, text, elapsed)
        logger.info(
            "tool_generated user_id=%s tool=%s generation_time=%.3f",
            user_id,
            tool.value,
            elapsed,
        )
        return ToolResult(text=text, generation_time=elapsed)

    def record_export(
        self,
        user_id: int,
        tool_type: ToolType | str,
        format: ExportFormat | str,
        content: Any,
        page_url: str | None = None,
    ) -> int:
        """
        Append an export row and return its id.

        ``page_url`` (or a ``pageUrl`` key inside ``content``) lands in the
        row's metadata.
        """
        tool = _parse_tool_type(tool_type)
        try:
            export_format = ExportFormat(format)
        except ValueError as exc:
            raise InvalidInput(
                f"Invalid export format: {format}. Expected PDF or Notion", fields=["format"]
            ) from exc

        if isinstance(content, dict):
            page_url = page_url or content.get("pageUrl")
        metadata = json.dumps({"pageUrl": page_url}) if page_url else None

        record = self.store.create_history(
            user_id=user_id,
            tool_type=tool.value,
            action=HistoryAction.EXPORT.value,
            format=export_format.value,
            input=json.dumps(content if content is not None else {}),
            output="",
            generation_time=0,
            metadata=metadata,
        )
        logger.info(
            "tool_exported user_id=%s tool=%s format=%s history_id=%s",
            user_id,
            tool.value,
            export_format.value,
            record.id,
        )
        return record.id

    def record_export_request(self, user_id: int, payload: Any) -> int:
        request = validate_payload(ExportRecordRequest, payload)
        if request.action != HistoryAction.EXPORT.value:
            raise InvalidInput(
                "Only export actions can be recorded; generations are recorded by the tools",
                fields=["action"],
            )
        return self.record_export(
            user_id=user_id,
            tool_type=request.toolType,
            format=request.format,
            content=request.content,
        )

    def _generate(self, tool: ToolType, user_id: int, prompt: str) -> str:
        try:
            text = self.llm.complete(prompt, temperature=GENERATION_TEMPERATURE)
        except GenerationFailed:
            logger.warning("tool_generation_failed user_id=%s tool=%s", user_id, tool.value)
            raise
        except Exception as exc:
            logger.warning(
                "tool_generation_failed user_id=%s tool=%s error=%s", user_id, tool.value, exc
            )
            raise GenerationFailed(str(exc) or exc.__class__.__name__) from exc

        if not isinstance(text, str) or not text.strip():
            raise GenerationFailed("Language model returned an empty completion")
        return text

    def _record_generation(
        self,
        tool: ToolType,
        user_id: int,
        data: ToolInput,
        text: str,
        elapsed: float,
    ) -> None:
        try:
            self.store.create_history(
                user_id=user_id,
                tool_type=tool.value,
                action=HistoryAction.GENERATE.value,
                input=json.dumps(data.to_record()),
                output=text,
                generation_time=round_seconds(elapsed),
            )
        except Exception:
            # History is best effort once the text exists.
            logger.exception("tool_history_write_failed user_id=%s tool=%s", user_id, tool.value)
