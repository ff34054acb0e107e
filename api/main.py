"""
FastAPI Backend for the VirtualEstate Contract Generator.

This module provides the REST API layer for contract generation:
- Contract preview (no persistence) and full generation
- Bulk generation for a list of leads
- Contract listing, the specialist review queue and review decisions
- Contract export as JSON or HTML

Architecture:
    Client -> FastAPI -> Orchestrator -> Pipeline stages -> Record service
"""

import os
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

import msgspec
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger
from pydantic import BaseModel, Field

from contractgen.error_handling import (
    AssemblyError,
    ContractGenError,
    ContractNotFoundError,
    InvalidTransitionError,
    LeadNotFoundError,
)
from contractgen.logging_config import setup_logging
from contractgen.orchestrator import (
    MAX_BULK_BATCH_SIZE,
    MAX_BULK_LEADS,
    ContractOrchestrator,
    create_orchestrator,
)
from tools.pdf_renderer import shutdown_browser

load_dotenv()

setup_logging(
    log_dir=os.getenv("LOG_DIR", "logs"),
    level=os.getenv("LOG_LEVEL", "INFO"),
    rotation="100 MB",
    retention="30 days",
)


# =============================================================================
# FastAPI Application Setup
# =============================================================================

app = FastAPI(
    title="VirtualEstate Contract Generator",
    description="Risk-scored contract generation with AI legal review and approval workflow",
    version="1.0.0",
)

cors_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:8000"
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


# =============================================================================
# Orchestrator Singleton
# =============================================================================

orchestrator: Optional[ContractOrchestrator] = None


def get_orchestrator() -> ContractOrchestrator:
    """Lazy initialization of the orchestrator singleton."""
    global orchestrator
    if orchestrator is None:
        orchestrator = create_orchestrator()
        logger.info("Orchestrator initialized")
    return orchestrator


def _to_json(value: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=msgspec.to_builtins(value))


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, ContractNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


FAILURE_STATUS_CODES = {
    LeadNotFoundError.__name__: 404,
    AssemblyError.__name__: 400,
}


def _failure_status(error_type: Optional[str]) -> int:
    """HTTP status for a failed preview or generation; server faults map to 500."""
    return FAILURE_STATUS_CODES.get(error_type, 500)


# =============================================================================
# Request Models
# =============================================================================


class PreviewRequest(BaseModel):
    """Contract preview request."""

    lead_id: str
    contract_type: str = "standard"
    overrides: Optional[Dict[str, Any]] = None


class GenerateRequest(PreviewRequest):
    """Full contract generation request."""

    expedited: bool = False
    manual_review: bool = False


class BulkGenerateRequest(BaseModel):
    """Bulk generation for several leads."""

    lead_ids: List[str] = Field(min_length=1, max_length=MAX_BULK_LEADS)
    contract_type: str = "standard"
    expedited: bool = False
    manual_review: bool = False
    overrides: Optional[Dict[str, Any]] = None
    batch_size: int = Field(default=5, ge=1, le=MAX_BULK_BATCH_SIZE)


class ReviewDecisionRequest(BaseModel):
    """Specialist decision on a contract under review."""

    contract_id: str
    action: Literal["approve", "reject", "request_changes"]
    reviewer: str = Field(min_length=1)
    notes: Optional[str] = None


# =============================================================================
# API Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "VirtualEstate Contract Generator API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "preview": "/contracts/preview",
            "generate": "/contracts/generate",
            "bulk_generate": "/contracts/bulk-generate",
            "list": "/contracts",
            "review": "/contracts/review",
            "download": "/contracts/{contract_id}/download",
            "metrics": "/metrics",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/metrics")
async def get_metrics():
    """Stage latency, approval outcome and risk score summary."""
    observability = get_orchestrator().observability
    if observability is None or observability.metrics is None:
        return {"enabled": False}
    return {"enabled": True, **observability.metrics.get_summary()}


@app.post("/contracts/preview")
async def preview_contract(request: PreviewRequest):
    """Assemble and review a contract without persisting it."""
    result = await get_orchestrator().generate_preview(
        request.lead_id, request.contract_type, request.overrides
    )
    return _to_json(result, 200 if result.success else _failure_status(result.error_type))


@app.post("/contracts/generate")
async def generate_contract(request: GenerateRequest):
    """Run the full generation pipeline for one lead."""
    logger.info("Contract generation requested", lead_id=request.lead_id, contract_type=request.contract_type)
    result = await get_orchestrator().generate(
        request.lead_id,
        request.contract_type,
        request.expedited,
        request.manual_review,
        request.overrides,
    )
    return _to_json(result, 200 if result.success else _failure_status(result.error_type))


@app.post("/contracts/bulk-generate")
async def bulk_generate_contracts(request: BulkGenerateRequest):
    """Generate contracts for up to 50 leads in concurrent batches."""
    try:
        result = await get_orchestrator().bulk_generate(
            request.lead_ids,
            request.contract_type,
            request.expedited,
            request.manual_review,
            request.overrides,
            request.batch_size,
        )
    except ValueError as e:
        raise _http_error(e)
    return _to_json(result)


@app.get("/contracts")
async def list_contracts(
    lead_id: Optional[str] = None,
    status: Optional[str] = None,
    contract_type: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    """List contracts, newest first."""
    try:
        contracts = await get_orchestrator().list_contracts(lead_id, status, contract_type, limit, offset)
    except ContractGenError as e:
        logger.error(f"Failed to list contracts: {e}")
        raise _http_error(e)
    return _to_json({"contracts": contracts, "count": len(contracts)})


@app.get("/contracts/review")
async def get_review_queue(
    status: Optional[str] = "pending_review",
    priority: Optional[Literal["high", "medium", "low"]] = None,
    contract_type: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
):
    """Contracts awaiting specialist review with priority and summary."""
    try:
        queue = await get_orchestrator().review_queue(status, priority, contract_type, limit, offset)
    except ContractGenError as e:
        logger.error(f"Failed to load review queue: {e}")
        raise _http_error(e)
    return _to_json(queue)


@app.post("/contracts/review")
async def submit_review_decision(request: ReviewDecisionRequest):
    """Approve, reject or request changes on a contract."""
    try:
        record = await get_orchestrator().record_review_decision(
            request.contract_id, request.action, request.reviewer, request.notes
        )
    except ContractGenError as e:
        logger.warning("Review decision rejected", contract_id=request.contract_id, error=str(e))
        raise _http_error(e)
    return _to_json({"success": True, "contract": record})


@app.get("/contracts/{contract_id}/download")
async def download_contract(
    contract_id: str,
    fmt: Literal["json", "html"] = Query(default="json", alias="format"),
):
    """Download a stored contract as JSON or re-rendered HTML."""
    try:
        content, media_type = await get_orchestrator().export_contract(contract_id, fmt)
    except (ContractGenError, ValueError) as e:
        raise _http_error(e)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="contract_{contract_id}.{fmt}"'},
    )


# =============================================================================
# Application Lifecycle Events
# =============================================================================


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("Starting VirtualEstate Contract Generator API")
    if not os.getenv("GOOGLE_API_KEY"):
        logger.warning("GOOGLE_API_KEY not set - legal reviews will use the fallback reviewer")
    get_orchestrator()
    logger.info("API startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    """Graceful shutdown: write the metrics summary and close the shared browser."""
    logger.info("Shutting down VirtualEstate Contract Generator API")
    if orchestrator is not None and orchestrator.observability is not None:
        try:
            orchestrator.observability.export_metrics()
        except OSError as e:
            logger.warning("Metrics export failed", error=str(e))
    await shutdown_browser()
