"""
Legal Review Agent - Automated compliance review of assembled contracts.

The contract is sent to the text-generation service with a request for a
JSON verdict (confidence score, risk factors, recommendations, warnings,
compliance map). The reply is decoded into a tagged result:

    ReviewParsed      -> the model's review is used as-is
    ReviewParseFailure -> the static fallback review is used

A service error, a timeout, a missing client or an unparsable reply all
end in the same fallback. ``review`` therefore never raises, except for
task cancellation, which always propagates.
"""

from typing import Any, Dict, List, Optional

import msgspec
from loguru import logger

from contractgen.error_handling import ReviewServiceError
from contractgen.logging_config import get_request_logger, log_stage_execution
from contractgen.models import (
    AIReview,
    ContractData,
    Lead,
    ReviewParsed,
    ReviewParseFailure,
    ReviewParseResult,
    TemplateMeta,
)
from tools.text_generation import TextGenerator

REVIEW_SYSTEM_PROMPT = (
    "You are an expert legal reviewer specializing in Egyptian real estate contracts. "
    "Provide thorough, accurate legal analysis."
)
REVIEW_TEMPERATURE = 0.1
REVIEW_MAX_TOKENS = 2000

FALLBACK_CONFIDENCE = 75


class _ReviewPayload(msgspec.Struct, rename="camel"):
    """Wire shape of the model's JSON answer."""
    confidence_score: float
    risk_factors: List[str] = []
    recommendations: List[str] = []
    warnings: List[str] = []
    compliance_check: Dict[str, Any] = {}


_payload_decoder = msgspec.json.Decoder(_ReviewPayload)


def fallback_review() -> AIReview:
    """Conservative review used whenever automated review is unavailable."""
    return AIReview(
        confidence_score=FALLBACK_CONFIDENCE,
        risk_factors=["AI review unavailable - manual review recommended"],
        recommendations=["Have a legal specialist review this contract"],
        warnings=["Automated legal review failed - manual review required"],
        compliance_check={"basic_clauses": "present", "legal_review": "required"},
        source="fallback",
    )


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block, if any."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_review_response(response_text: Optional[str]) -> ReviewParseResult:
    """Decode the model's reply into a tagged parse result. Never raises."""
    if not response_text or not response_text.strip():
        return ReviewParseFailure(reason="empty response")

    try:
        payload = _payload_decoder.decode(strip_code_fences(response_text).encode("utf-8"))
    except msgspec.DecodeError as e:
        return ReviewParseFailure(reason=f"invalid review JSON: {e}")

    score = payload.confidence_score
    if not 0 <= score <= 100:
        return ReviewParseFailure(reason=f"confidence score out of range: {score}")

    return ReviewParsed(review=AIReview(
        confidence_score=int(round(score)),
        risk_factors=payload.risk_factors,
        recommendations=payload.recommendations,
        warnings=payload.warnings,
        compliance_check=payload.compliance_check,
        source="ai",
    ))


def build_review_prompt(contract_data: ContractData, template_meta: TemplateMeta, lead: Lead) -> str:
    contract_json = msgspec.json.encode(contract_data).decode("utf-8")
    return f"""As an Egyptian real estate legal expert, review this contract for:
1. Legal compliance with Egyptian real estate law
2. Completeness of required clauses
3. Internal consistency
4. Potential risk factors
5. Overall quality and enforceability

Template: {template_meta.name} ({template_meta.id})
Contract: {contract_json}
Property Type: {lead.property_type or "unspecified"}
Location: {lead.location or "unspecified"}
Value Range: {lead.price_range or "unspecified"}

Respond with a single JSON object and nothing else:
{{
  "confidenceScore": <integer 0-100>,
  "riskFactors": [<string>, ...],
  "recommendations": [<string>, ...],
  "warnings": [<string>, ...],
  "complianceCheck": {{<clause or requirement>: <status>, ...}}
}}"""


class LegalReviewAgent:
    """Runs the automated legal review with a deterministic fallback."""

    def __init__(self, text_generator: Optional[TextGenerator] = None):
        """Initialize the Legal Review Agent.

        Args:
            text_generator: Text-generation client; without one every
                review is the fallback review
        """
        self.text_generator = text_generator
        if text_generator is None:
            logger.warning("Legal Review Agent has no text generator, fallback reviews only")

    @log_stage_execution("LegalReview")
    async def review(
        self,
        contract_data: ContractData,
        template_meta: TemplateMeta,
        lead: Lead
    ) -> AIReview:
        """Review ``contract_data``; returns the fallback review on any failure."""
        review_logger = get_request_logger(lead.id, "LegalReview")

        if self.text_generator is None:
            return fallback_review()

        try:
            response_text = await self.text_generator.complete(
                REVIEW_SYSTEM_PROMPT,
                build_review_prompt(contract_data, template_meta, lead),
                REVIEW_TEMPERATURE,
                REVIEW_MAX_TOKENS,
            )
        except ReviewServiceError as e:
            review_logger.warning("Review service failed, using fallback review", error=str(e))
            return fallback_review()
        except Exception as e:
            review_logger.warning(
                "Unexpected review client error, using fallback review",
                error=str(e),
                error_type=type(e).__name__
            )
            return fallback_review()

        result = parse_review_response(response_text)
        if isinstance(result, ReviewParseFailure):
            review_logger.warning("Unparsable review response, using fallback review", reason=result.reason)
            return fallback_review()

        review_logger.info(
            "AI review complete",
            confidence_score=result.review.confidence_score,
            risk_factor_count=len(result.review.risk_factors)
        )
        return result.review
