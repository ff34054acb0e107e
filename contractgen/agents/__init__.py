"""Agents package for the contract generation pipeline."""

from contractgen.agents.risk_assessment_agent import RiskAssessmentAgent
from contractgen.agents.contract_assembly_agent import ContractAssemblyAgent
from contractgen.agents.drafting_agent import DraftingAgent
from contractgen.agents.legal_review_agent import LegalReviewAgent
from contractgen.agents.document_agent import DocumentAgent

__all__ = [
    "RiskAssessmentAgent",
    "ContractAssemblyAgent",
    "DraftingAgent",
    "LegalReviewAgent",
    "DocumentAgent",
]
