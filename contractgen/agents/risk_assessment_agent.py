"""
Risk Assessment Agent - Rule-based legal risk scoring for leads.

Scoring starts from a base value and adds one independent contribution
per rule group, in this order:
1. Location (low-risk district, legacy-ownership district, or unclassified)
2. Price magnitude ("million" / "M" marker in the price range)
3. Declared property type (commercial, land, luxury, residential default)
4. Urgency (emergency reason or immediate timeline)
5. Decision authority (contact is not the final decision-maker)

The result is clamped to the configured maximum. Factors and
recommendations are appended in rule order so that identical leads
always yield identical assessments.
"""

from typing import List, Optional

from loguru import logger

from contractgen.logging_config import log_stage_execution
from contractgen.models import Lead, RiskAssessment
from tools.price_parser import has_million_marker
from tools.risk_rule_lookup import RiskRuleLookup, RuleContribution


class RiskAssessmentAgent:
    """Pure, deterministic risk scoring: Lead -> RiskAssessment."""

    def __init__(self, rules_path: Optional[str] = None, rule_lookup: Optional[RiskRuleLookup] = None):
        """Initialize the Risk Assessment Agent.

        Args:
            rules_path: Path to a risk_rules.json file (defaults to the packaged table)
            rule_lookup: Preloaded rule lookup, takes precedence over rules_path
        """
        self.rule_lookup = rule_lookup or RiskRuleLookup(rules_path=rules_path)
        logger.info("Risk Assessment Agent initialized", rules_path=str(self.rule_lookup.rules_path))

    @log_stage_execution("RiskAssessment")
    def assess(self, lead: Lead) -> RiskAssessment:
        """Score the legal risk of contracting with ``lead``. Never raises for a valid Lead."""
        rules = self.rule_lookup.rules
        score = rules.base_score
        factors: List[str] = []
        recommendations: List[str] = []

        def apply(rule: RuleContribution):
            nonlocal score
            score += rule.weight
            factors.append(rule.factor)
            recommendations.append(rule.recommendation)

        location_class = self.rule_lookup.classify_location(lead.location)
        if location_class == "low":
            score += rules.location.low_risk_weight
        elif location_class == "high":
            apply(rules.location.high_risk)
        else:
            score += rules.location.default_weight

        if has_million_marker(lead.price_range):
            apply(rules.high_value)

        type_rule = self.rule_lookup.property_type_rule(lead.property_type)
        if type_rule is not None:
            apply(type_rule)
        else:
            score += rules.default_property_type_weight

        if self.rule_lookup.is_urgent(lead.urgency_reason, lead.timeline):
            apply(rules.urgency.rule)

        if self.rule_lookup.needs_owner_authorization(lead.decision_authority):
            apply(rules.decision_authority.rule)

        score = max(0, min(score, rules.max_score))

        logger.bind(lead_id=lead.id).debug(
            "Risk assessed",
            score=score,
            location_class=location_class,
            factor_count=len(factors)
        )
        return RiskAssessment(score=score, factors=factors, recommendations=recommendations)
