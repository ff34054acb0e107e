"""Risk Rule Lookup Tool for lead risk assessment.

Loads the weighted rule table (risk_rules.json) and answers the
classification questions the risk engine asks about a lead. Matching is
case-insensitive substring matching throughout.
"""

from pathlib import Path
from typing import Dict, List, Optional

import msgspec
from loguru import logger

from contractgen.error_handling import ConfigurationError


class RuleContribution(msgspec.Struct, frozen=True):
    weight: int
    factor: str
    recommendation: str


class LocationRules(msgspec.Struct, frozen=True):
    low_risk_areas: List[str]
    high_risk_areas: List[str]
    low_risk_weight: int
    default_weight: int
    high_risk: RuleContribution


class UrgencyRules(msgspec.Struct, frozen=True):
    urgency_keywords: List[str]
    timeline_keywords: List[str]
    rule: RuleContribution


class DecisionAuthorityRules(msgspec.Struct, frozen=True):
    trigger_values: List[str]
    rule: RuleContribution


class RiskRules(msgspec.Struct, frozen=True):
    base_score: int
    max_score: int
    location: LocationRules
    high_value: RuleContribution
    property_types: Dict[str, RuleContribution]
    default_property_type_weight: int
    urgency: UrgencyRules
    decision_authority: DecisionAuthorityRules


DEFAULT_RULES_PATH = Path(__file__).parent.parent / "contractgen" / "risk_rules.json"


def _contains_any(text: Optional[str], keywords: List[str]) -> bool:
    lowered = (text or "").lower()
    return any(keyword.lower() in lowered for keyword in keywords)


class RiskRuleLookup:
    """Typed access to the risk rule table."""

    def __init__(self, rules_path: Optional[str] = None):
        """Initialize the risk rule lookup tool.

        Args:
            rules_path: Path to risk_rules.json (defaults to contractgen/risk_rules.json)
        """
        self.rules_path = Path(rules_path) if rules_path else DEFAULT_RULES_PATH
        self.rules = self._load_rules()

        logger.info(
            "Risk rules loaded",
            rules_path=str(self.rules_path),
            property_type_rules=len(self.rules.property_types)
        )

    def _load_rules(self) -> RiskRules:
        """Load and validate the rule table.

        Raises:
            ConfigurationError: If the file is missing or does not match the schema
        """
        if not self.rules_path.exists():
            raise ConfigurationError(f"Risk rules file not found: {self.rules_path}")

        try:
            return msgspec.json.decode(self.rules_path.read_bytes(), type=RiskRules)
        except msgspec.DecodeError as e:
            raise ConfigurationError(f"Invalid risk rules file {self.rules_path}: {e}") from e

    def classify_location(self, location: Optional[str]) -> str:
        """Return "low", "high" or "medium" for a free-text location."""
        if _contains_any(location, self.rules.location.low_risk_areas):
            return "low"
        if _contains_any(location, self.rules.location.high_risk_areas):
            return "high"
        return "medium"

    def property_type_rule(self, property_type: Optional[str]) -> Optional[RuleContribution]:
        """Rule for a declared property type, or None for the residential default."""
        return self.rules.property_types.get((property_type or "").strip().lower())

    def is_urgent(self, urgency_reason: Optional[str], timeline: Optional[str]) -> bool:
        urgency = self.rules.urgency
        return (
            _contains_any(urgency_reason, urgency.urgency_keywords)
            or _contains_any(timeline, urgency.timeline_keywords)
        )

    def needs_owner_authorization(self, decision_authority: Optional[str]) -> bool:
        return (decision_authority or "").strip().lower() in self.rules.decision_authority.trigger_values
