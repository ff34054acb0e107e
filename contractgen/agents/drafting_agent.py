"""
Drafting Agent - Optional AI-assisted wording for free-text contract fields.

Only a fixed whitelist of descriptive fields can be drafted by the model;
numbers, dates, flags and legal terms always come from overrides, the
lead or platform defaults. Suggestions are validated through
``ContractOverrides`` and rank below operator overrides during assembly.
Any failure means no suggestions, so the contract is populated from the
template alone.
"""

from typing import Optional

import msgspec

from contractgen.agents.legal_review_agent import strip_code_fences
from contractgen.error_handling import ReviewServiceError, graceful_degradation
from contractgen.logging_config import get_request_logger
from contractgen.models import ContractOverrides, Lead
from tools.text_generation import TextGenerator

DRAFTABLE_FIELDS = ("property_description", "payment_terms", "additional_fees")
MAX_FIELD_LENGTH = 600

DRAFTING_SYSTEM_PROMPT = (
    "You are an expert Egyptian real estate lawyer who drafts clear, legally sound "
    "wording for property service agreements."
)
DRAFTING_TEMPERATURE = 0.1
DRAFTING_MAX_TOKENS = 4000


class _DraftPayload(msgspec.Struct):
    property_description: Optional[str] = None
    payment_terms: Optional[str] = None
    additional_fees: Optional[str] = None


def _no_suggestions(*args, **kwargs) -> ContractOverrides:
    return ContractOverrides()


class DraftingAgent:
    """Asks the text-generation service for wording of whitelisted fields."""

    def __init__(self, text_generator: TextGenerator):
        self.text_generator = text_generator

    def _build_prompt(self, lead: Lead, contract_type: str) -> str:
        return f"""Draft wording for a VirtualEstate property service agreement ({contract_type}).

Property: {lead.property_type or "property"} in {lead.location or "Egypt"}
Size: {lead.property_size_sqm or "unknown"} sqm
Condition: {lead.property_condition or "unknown"}
Price range: {lead.price_range or "unspecified"}

Return a JSON object with these optional string fields only:
- "property_description": two or three sentences describing the property for the agreement
- "payment_terms": when and how the commission is paid
- "additional_fees": any additional fees, or an empty string if none

Use plain, precise language suitable for Egyptian real estate practice."""

    @graceful_degradation(fallback_func=_no_suggestions)
    async def suggest_overrides(self, lead: Lead, contract_type: str = "standard") -> ContractOverrides:
        """Return drafted field values, or empty overrides on any failure."""
        draft_logger = get_request_logger(lead.id, "Drafting")

        response_text = await self.text_generator.complete(
            DRAFTING_SYSTEM_PROMPT,
            self._build_prompt(lead, contract_type),
            DRAFTING_TEMPERATURE,
            DRAFTING_MAX_TOKENS,
        )
        if not response_text:
            raise ReviewServiceError("Drafting service returned no text")

        try:
            payload = msgspec.json.decode(strip_code_fences(response_text).encode("utf-8"), type=_DraftPayload)
        except msgspec.DecodeError as e:
            draft_logger.warning("Unparsable drafting response, template-only population", error=str(e))
            return ContractOverrides()

        drafted = {}
        for field in DRAFTABLE_FIELDS:
            value = getattr(payload, field)
            if value and value.strip():
                drafted[field] = value.strip()[:MAX_FIELD_LENGTH]
        draft_logger.info("Drafted contract wording", fields=sorted(drafted))
        return ContractOverrides(**drafted)
