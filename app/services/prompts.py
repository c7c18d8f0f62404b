"""Prompt builders for the generation tools.

Optional inputs that were not supplied leave no trace in the prompt: no
empty "Timeline:" style labels are ever rendered.
"""

from __future__ import annotations

from typing import Any, Iterable

from app.schemas.tools import (
    BriefInput,
    ContractInput,
    EmailInput,
    OnboardingInput,
    PricingInput,
    ProposalInput,
)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple)):
        return any(_present(item) for item in value)
    return True


def _line(label: str, value: Any) -> str | None:
    if not _present(value):
        return None
    return f"{label}: {value}"


def _render(blocks: Iterable[str | list[str | None] | None]) -> str:
    """Join blocks with blank lines; list blocks are joined line by line."""
    rendered = []
    for block in blocks:
        if block is None:
            continue
        if isinstance(block, list):
            lines = [line for line in block if line]
            if lines:
                rendered.append("\n".join(lines))
        elif block.strip():
            rendered.append(block.strip())
    return "\n\n".join(rendered)


def _budget_range(minimum: Any, maximum: Any) -> str | None:
    if _present(minimum) and _present(maximum):
        return f"Budget Range: ${minimum} - ${maximum}"
    if _present(minimum):
        return f"Budget: from ${minimum}"
    if _present(maximum):
        return f"Budget: up to ${maximum}"
    return None


def build_proposal_prompt(data: ProposalInput) -> str:
    return _render([
        "Generate a professional project proposal with the following details:",
        [
            _line("Project Title", data.title),
            _line("Client Industry", data.industry),
            _line("Project Scope", data.scope),
            _line("Start Date", data.start_date),
            _line("End Date", data.end_date),
            _budget_range(data.min_budget, data.max_budget),
        ],
        f"Tone: {data.tone or 'professional'}",
        "\n".join([
            "The proposal should include the following sections:",
            "1. Introduction and project understanding",
            "2. Detailed scope of work",
            "3. Timeline and milestones",
            "4. Pricing and payment terms",
            "5. About me/my team",
            "6. Next steps",
        ]),
        "Format the response with proper section headers and professional language.",
    ])


def build_email_prompt(data: EmailInput) -> str:
    return _render([
        [
            f"Rewrite the following email to sound more {data.tone or 'professional'}.",
            _line("Additional context", data.context),
        ],
        f"Here's the original email:\n\"{data.original_email}\"",
        "Please maintain the same information but improve the structure, clarity, "
        "tone, and professionalism. Fix any grammar or spelling issues.",
    ])


def build_pricing_prompt(data: PricingInput) -> str:
    return _render([
        "Generate pricing estimates for a freelance project with the following details:",
        [
            _line("Project Type", data.project_type),
            _line("Project Scope", data.scope),
            _line("Timeline", data.timeline),
            _line("Experience Level", data.experience or "intermediate"),
            _line("Region", data.region),
        ],
        "\n".join([
            "Provide both hourly rate and flat project rate estimates. Include:",
            "1. A range of prices with low, average, and high estimates",
            "2. Factors that influence the price",
            "3. How to justify the rates to clients",
            "4. Any recommendations for pricing structure (milestone payments, etc.)",
        ]),
        "Format the response with clear sections and professional language.",
    ])


def build_contract_prompt(data: ContractInput) -> str:
    focus_areas = [area.strip() for area in (data.focus_areas or []) if _present(area)]
    return _render([
        "Explain the following contract in simple, plain English:",
        data.contract_text,
        (
            f"Please focus especially on these areas: {', '.join(focus_areas)}"
            if focus_areas
            else None
        ),
        "\n".join([
            "Break down the explanation into sections:",
            "1. Summary of the contract",
            "2. Key terms and obligations",
            "3. Potential risks or red flags",
            "4. Plain English explanation of legal jargon",
            "5. What to pay attention to before signing",
        ]),
        "Format the response with clear headings and simple language that a "
        "non-lawyer can understand.",
    ])


def build_brief_prompt(data: BriefInput) -> str:
    return _render([
        "Convert the following unstructured ideas into a formal creative brief:",
        data.text,
        "\n".join([
            "Create a structured creative brief that includes:",
            "1. Project overview and background",
            "2. Objectives and goals",
            "3. Target audience",
            "4. Key deliverables",
            "5. Timeline",
            "6. Budget considerations",
            "7. Constraints or special requirements",
        ]),
        "Format the response as a professional document that could be shared "
        "with clients or team members.",
    ])


def build_onboarding_prompt(data: OnboardingInput) -> str:
    return _render([
        "Create a client onboarding document for a new freelance client with the "
        "following details:",
        [
            _line("Client Name", data.client_name),
            _line("Business Type", data.business_type),
            _line("Project Type", data.project_type),
            _line("Timeline", data.timeline),
            _line("Budget", data.budget),
            _line("Additional Information", data.additional_info),
        ],
        f"Tone: {data.tone or 'professional'}",
        "\n".join([
            "The document should include:",
            "1. A warm welcome message",
            "2. Project overview and goals",
            "3. Communication channels and response times",
            "4. Timeline, milestones and approval process",
            "5. What the client needs to provide",
            "6. Payment terms and invoicing",
            "7. Next steps",
        ]),
        "Set clear expectations and boundaries while keeping the client confident "
        "in the process.",
    ])
