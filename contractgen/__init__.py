"""VirtualEstate Contract Generator - contract pipeline package."""

from contractgen.models import (
    Lead,
    RiskAssessment,
    ContractData,
    ContractOverrides,
    AIReview,
    ApprovalDecision,
    ContractRecord,
    GenerationResult,
    PreviewResult,
)

from contractgen.logging_config import (
    setup_logging,
    get_request_logger,
    log_stage_execution,
)

from contractgen.error_handling import (
    ContractGenError,
    LeadNotFoundError,
    ContractNotFoundError,
    AssemblyError,
    RenderError,
    StorageError,
    ReviewServiceError,
    PersistenceError,
    InvalidTransitionError,
    ConfigurationError,
    handle_errors,
    graceful_degradation,
)

__version__ = "0.1.0"

__all__ = [
    # Models
    "Lead",
    "RiskAssessment",
    "ContractData",
    "ContractOverrides",
    "AIReview",
    "ApprovalDecision",
    "ContractRecord",
    "GenerationResult",
    "PreviewResult",
    # Logging
    "setup_logging",
    "get_request_logger",
    "log_stage_execution",
    # Error Handling
    "ContractGenError",
    "LeadNotFoundError",
    "ContractNotFoundError",
    "AssemblyError",
    "RenderError",
    "StorageError",
    "ReviewServiceError",
    "PersistenceError",
    "InvalidTransitionError",
    "ConfigurationError",
    "handle_errors",
    "graceful_degradation",
]
