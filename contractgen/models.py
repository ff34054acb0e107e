"""
Data Models - msgspec Structs for the contract generation pipeline.

These models define the values passed between pipeline stages and
persisted by the record service. Value objects produced by a stage
(risk assessment, contract data, AI review) are frozen: a new generation
request always produces new instances.
"""

from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from msgspec import Meta, Struct


ContractType = Literal[
    "standard",
    "exclusive_listing",
    "sale_agreement",
    "marketing_authorization",
    "commission_agreement",
]
CommissionStructure = Literal["percentage", "flat_fee", "tiered"]
DisputeResolution = Literal["mediation", "arbitration", "court"]
ContractStatus = Literal["generated", "approved", "pending_review", "rejected"]
ReviewAction = Literal["approve", "reject", "request_changes"]
ReviewPriority = Literal["high", "medium", "low"]

CONTRACT_TYPES: tuple = ContractType.__args__
MARKETING_FLAGS = (
    "marketing_authorization",
    "online_marketing",
    "social_media_marketing",
    "photography_authorization",
    "virtual_tour_authorization",
    "signage_authorization",
)


class Lead(Struct, kw_only=True):
    """Inbound sales contact describing a property and its owner."""
    id: str
    name: str = ""
    email: str = ""
    whatsapp_number: str = ""
    location: str = ""
    price_range: str = ""
    property_type: str = ""
    timeline: str = ""
    property_size_sqm: Optional[float] = None
    property_condition: Optional[str] = None
    urgency_reason: Optional[str] = None
    decision_authority: Optional[str] = None  # "self" or "needs_approval"
    status: str = "new"
    contract_status: Optional[str] = None


class RiskAssessment(Struct, frozen=True):
    """Legal risk score with the factors and recommendations that produced it."""
    score: int
    factors: List[str]
    recommendations: List[str]


# Contract data blocks

class ClientBlock(Struct, frozen=True, kw_only=True):
    name: str = ""
    email: str = ""
    phone: str = ""
    id_number: Optional[str] = None


class PropertyBlock(Struct, frozen=True, kw_only=True):
    address: str = ""
    property_type: str = ""
    size_sqm: str = "To be determined"
    condition: str = "As inspected"
    listing_price: float = 0.0
    description: Optional[str] = None


class TermBlock(Struct, frozen=True, kw_only=True):
    contract_duration: int  # months
    start_date: date
    end_date: date
    termination_notice: int  # days
    notice_period: int  # hours


class MarketingAuthorization(Struct, frozen=True, kw_only=True):
    marketing_authorization: bool = True
    online_marketing: bool = True
    social_media_marketing: bool = True
    photography_authorization: bool = True
    virtual_tour_authorization: bool = True
    signage_authorization: bool = True


class CommissionTerms(Struct, frozen=True, kw_only=True):
    commission_rate: float = 2.5
    commission_structure: CommissionStructure = "percentage"
    payment_terms: str = "Due upon successful sale completion"
    payment_due_date: str = "Upon transaction closing"
    additional_fees: str = ""


class LegalTerms(Struct, frozen=True, kw_only=True):
    legal_jurisdiction: str = "Egypt"
    governing_law: str = "Egyptian Real Estate Law"
    dispute_resolution: DisputeResolution = "mediation"


class AdditionalServices(Struct, frozen=True, kw_only=True):
    property_management: bool = False
    maintenance_coordination: bool = True
    tenant_screening: bool = False


class ContractData(Struct, frozen=True, kw_only=True):
    """Fully resolved contract model consumed by the HTML serializer."""
    contract_id: str
    generated_at: datetime
    generated_by: str
    contract_type: ContractType
    client: ClientBlock
    property: PropertyBlock
    terms: TermBlock
    marketing: MarketingAuthorization
    commission: CommissionTerms
    legal: LegalTerms
    services: AdditionalServices


class ContractOverrides(Struct, kw_only=True, omit_defaults=True):
    """Operator-supplied field overrides, all optional.

    Validated with ``msgspec.convert`` so a wrong type or an unknown enum
    value is rejected before assembly starts.
    """
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    client_id_number: Optional[str] = None
    property_address: Optional[str] = None
    property_type: Optional[str] = None
    property_size_sqm: Optional[Annotated[float, Meta(gt=0)]] = None
    property_condition: Optional[str] = None
    property_description: Optional[str] = None
    listing_price: Optional[Annotated[float, Meta(ge=0)]] = None
    contract_duration: Optional[Annotated[int, Meta(ge=1, le=120)]] = None
    start_date: Optional[date] = None
    termination_notice: Optional[Annotated[int, Meta(ge=0)]] = None
    notice_period: Optional[Annotated[int, Meta(ge=0)]] = None
    marketing_authorization: Optional[bool] = None
    online_marketing: Optional[bool] = None
    social_media_marketing: Optional[bool] = None
    photography_authorization: Optional[bool] = None
    virtual_tour_authorization: Optional[bool] = None
    signage_authorization: Optional[bool] = None
    commission_rate: Optional[Annotated[float, Meta(ge=0, le=100)]] = None
    commission_structure: Optional[CommissionStructure] = None
    payment_terms: Optional[str] = None
    payment_due_date: Optional[str] = None
    additional_fees: Optional[str] = None
    legal_jurisdiction: Optional[str] = None
    governing_law: Optional[str] = None
    dispute_resolution: Optional[DisputeResolution] = None
    property_management: Optional[bool] = None
    maintenance_coordination: Optional[bool] = None
    tenant_screening: Optional[bool] = None


class TemplateMeta(Struct, frozen=True, kw_only=True):
    id: str = "unified-standard"
    name: str = "VirtualEstate Standard Agreement"
    property_type: str = "all"
    success_rate: int = 95


class AIReview(Struct, frozen=True, kw_only=True):
    """Outcome of the automated legal review (AI or fallback)."""
    confidence_score: int
    risk_factors: List[str] = []
    recommendations: List[str] = []
    warnings: List[str] = []
    compliance_check: Dict[str, Any] = {}
    source: Literal["ai", "fallback"] = "ai"


class ReviewParsed(Struct, tag=True):
    review: AIReview


class ReviewParseFailure(Struct, tag=True):
    reason: str


ReviewParseResult = Union[ReviewParsed, ReviewParseFailure]


class ApprovalDecision(Struct, frozen=True):
    auto_approved: bool
    requires_manual_review: bool
    status: ContractStatus
    reasons: List[str] = []


class PublishedDocument(Struct, frozen=True, kw_only=True):
    """Reference to the rendered document, uploaded or inline."""
    url: str
    kind: Literal["pdf", "inline_html"]
    page_count: Optional[int] = None
    warning: Optional[str] = None


class ContractRecord(Struct, kw_only=True):
    """Persisted contract row."""
    id: str
    lead_id: str
    contract_type: ContractType
    template_id: str
    generation_time_ms: int
    ai_confidence_score: int
    legal_risk_score: int
    contract_data: ContractData
    document_url: str
    status: ContractStatus = "generated"
    auto_approved: bool = False
    expedited: bool = False
    created_at: datetime
    updated_at: datetime


class ContractReviewRecord(Struct, kw_only=True):
    """Persisted AI review row, child of a contract."""
    contract_id: str
    confidence_score: int
    risk_factors: List[str] = []
    recommendations: List[str] = []
    warnings: List[str] = []
    compliance_check: Dict[str, Any] = {}
    manual_review_required: bool = False
    source: str = "ai"
    specialist_notes: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None


class NotificationRecord(Struct, kw_only=True):
    contract_id: str
    lead_id: str
    type: Literal["contract_approved", "contract_generated"]
    delivery_method: str = "whatsapp"
    recipient_type: str = "client"
    recipient: str = ""
    message: str = ""
    status: str = "pending"


class StageTrace(Struct):
    """Execution trace of a single pipeline stage."""
    stage_name: str
    timestamp: datetime
    input_hash: str
    output_hash: str
    latency_seconds: float
    success: bool
    error_message: Optional[str] = None


class GenerationResult(Struct, kw_only=True):
    success: bool
    lead_id: str
    state: str
    generation_time_ms: int
    contract_id: Optional[str] = None
    contract_reference: Optional[str] = None
    document_url: Optional[str] = None
    risk_score: Optional[int] = None
    confidence_score: Optional[int] = None
    approval: Optional[ApprovalDecision] = None
    errors: List[str] = []
    warnings: List[str] = []
    error_type: Optional[str] = None
    stage_traces: List[StageTrace] = []


class PreviewResult(Struct, kw_only=True):
    success: bool
    lead_id: str
    generation_time_ms: int
    contract_data: Optional[ContractData] = None
    ai_review: Optional[AIReview] = None
    risk: Optional[RiskAssessment] = None
    html: Optional[str] = None
    errors: List[str] = []
    error_type: Optional[str] = None


class BulkGenerationResult(Struct, kw_only=True):
    total: int
    succeeded: int
    failed: int
    results: List[GenerationResult] = []


class ReviewQueueItem(Struct, kw_only=True):
    contract_id: str
    lead_id: str
    contract_reference: str
    contract_type: str
    status: ContractStatus
    priority: ReviewPriority
    legal_risk_score: int
    ai_confidence_score: int
    client_name: str
    created_at: datetime
    review: Optional[ContractReviewRecord] = None
