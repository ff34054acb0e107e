"""
Contract Generation Orchestrator - Lead-to-contract pipeline coordinator.

Runs the stages for one lead:
    Lead -> Risk Assessment -> Assembly -> (Legal Review || Rendering)
         -> Persistence -> Approval -> Lead update + Notification

Key Features:
- Structured results: public entry points report failures instead of raising
- AI review and document rendering run concurrently after assembly
- No contract row is written before a document reference exists
- Best-effort lead status update and client notification
- Per-stage traces, spans and metrics for every run
"""

import asyncio
import hashlib
import os
import time
import uuid
from contextlib import contextmanager, nullcontext
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import msgspec
from loguru import logger

from contractgen.agents.contract_assembly_agent import ContractAssemblyAgent
from contractgen.agents.document_agent import DocumentAgent
from contractgen.agents.drafting_agent import DraftingAgent
from contractgen.agents.legal_review_agent import LegalReviewAgent
from contractgen.agents.risk_assessment_agent import RiskAssessmentAgent
from contractgen.approval_policy import (
    calculate_review_priority,
    check_transition,
    evaluate_approval,
    review_flag_required,
    status_for_action,
)
from contractgen.error_handling import (
    ContractGenError,
    ContractNotFoundError,
    InvalidTransitionError,
    LeadNotFoundError,
    graceful_degradation,
)
from contractgen.logging_config import get_request_logger
from contractgen.models import (
    AIReview,
    ApprovalDecision,
    BulkGenerationResult,
    ContractData,
    ContractRecord,
    ContractReviewRecord,
    GenerationResult,
    Lead,
    NotificationRecord,
    PreviewResult,
    PublishedDocument,
    ReviewAction,
    ReviewQueueItem,
    StageTrace,
    TemplateMeta,
)
from contractgen.observability import ObservabilityManager, Tracer
from storage.store_manager import StoreManager, create_store_manager
from tools.contract_html import render_contract_html
from tools.pdf_inspector import PDFInspector
from tools.pdf_renderer import PDFRenderer, PDFRenderOptions, CONTRACT_PDF_OPTIONS, get_browser_manager
from tools.text_generation import GeminiTextGenerator, TextGenerator

MAX_BULK_LEADS = 50
MAX_BULK_BATCH_SIZE = 10

APPROVED_MESSAGE = "Great news! Your property contract is ready and approved. We'll send it to you shortly."
GENERATED_MESSAGE = "Your property contract has been generated and is under review. We'll update you soon."

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
EXPORT_FORMATS = ("json", "html")


class GenerationState(str, Enum):
    RECEIVED = "received"
    RISK_ASSESSED = "risk_assessed"
    ASSEMBLED = "assembled"
    REVIEWED = "reviewed"
    RENDERED = "rendered"
    PERSISTED = "persisted"
    AUTO_APPROVED = "auto_approved"
    PENDING_REVIEW = "pending_review"


def _hash(value: Any) -> str:
    encoded = msgspec.json.encode(value, enc_hook=str)
    return hashlib.sha256(encoded).hexdigest()[:16]


class _Run:
    """Mutable bookkeeping for one generation or preview call."""

    def __init__(self, lead_id: str, tracer: Optional[Tracer]):
        self.lead_id = lead_id
        self.tracer = tracer
        self.state = GenerationState.RECEIVED
        self.started = time.perf_counter()
        self.traces: List[StageTrace] = []
        self.warnings: List[str] = []

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)


class ContractOrchestrator:
    """
    Coordinates the contract generation pipeline.

    Stages are stateless agents; all durable state lives in the record
    service reached through the store manager.
    """

    def __init__(
        self,
        store_manager: StoreManager,
        risk_agent: Optional[RiskAssessmentAgent] = None,
        assembly_agent: Optional[ContractAssemblyAgent] = None,
        review_agent: Optional[LegalReviewAgent] = None,
        document_agent: Optional[DocumentAgent] = None,
        drafting_agent: Optional[DraftingAgent] = None,
        template_meta: Optional[TemplateMeta] = None,
        observability: Optional[ObservabilityManager] = None
    ):
        """Initialize the orchestrator.

        Args:
            store_manager: Record service and object store
            risk_agent: Risk Assessment Agent (default rules when omitted)
            assembly_agent: Contract Assembly Agent
            review_agent: Legal Review Agent (fallback-only when omitted)
            document_agent: Document Agent (default browser and the store's object store when omitted)
            drafting_agent: Optional AI drafting of free-text fields
            template_meta: Template metadata passed to the legal review
            observability: Tracing and metrics; disabled when omitted
        """
        self.stores = store_manager
        self.risk_agent = risk_agent or RiskAssessmentAgent()
        self.assembly_agent = assembly_agent or ContractAssemblyAgent()
        self.review_agent = review_agent or LegalReviewAgent()
        self.document_agent = document_agent or DocumentAgent(
            renderer=PDFRenderer(get_browser_manager()),
            object_store=store_manager.documents,
        )
        self.drafting_agent = drafting_agent
        self.template_meta = template_meta or TemplateMeta()
        self.observability = observability

        logger.info(
            "ContractOrchestrator initialized",
            drafting=drafting_agent is not None,
            observability=observability is not None
        )

    # Stage bookkeeping

    def _new_run(self, lead_id: str) -> _Run:
        tracer = self.observability.new_tracer() if self.observability else None
        return _Run(lead_id, tracer)

    @contextmanager
    def _stage(self, run: _Run, stage_name: str, input_data: Any):
        """Time a stage and record its trace, span and metrics.

        The block stores its result under ``outcome["output"]`` for hashing.
        """
        metrics = self.observability.metrics if self.observability else None
        span_context = run.tracer.span(stage_name, lead_id=run.lead_id) if run.tracer else nullcontext()
        outcome: Dict[str, Any] = {}
        start = time.perf_counter()
        input_hash = _hash(input_data)

        with span_context:
            try:
                yield outcome
            except Exception as e:
                latency = time.perf_counter() - start
                run.traces.append(StageTrace(
                    stage_name=stage_name,
                    timestamp=datetime.now(timezone.utc),
                    input_hash=input_hash,
                    output_hash="",
                    latency_seconds=latency,
                    success=False,
                    error_message=str(e),
                ))
                if metrics:
                    metrics.record_stage_latency(stage_name, latency)
                    metrics.record_stage_error(stage_name)
                raise

        latency = time.perf_counter() - start
        run.traces.append(StageTrace(
            stage_name=stage_name,
            timestamp=datetime.now(timezone.utc),
            input_hash=input_hash,
            output_hash=_hash(outcome.get("output")),
            latency_seconds=latency,
            success=True,
        ))
        if metrics:
            metrics.record_stage_latency(stage_name, latency)
            metrics.record_stage_success(stage_name)

    def _finish_run(self, run: _Run):
        if self.observability:
            self.observability.export_trace(run.tracer, run.lead_id)

    # Shared stages

    async def _load_lead(self, run: _Run, lead_id: str) -> Lead:
        with self._stage(run, "LeadLookup", lead_id) as outcome:
            lead = await self.stores.run(self.stores.records.get_lead, lead_id)
            if lead is None:
                raise LeadNotFoundError(f"Lead not found: {lead_id}")
            outcome["output"] = lead
        return lead

    async def _assess_and_assemble(
        self,
        run: _Run,
        lead: Lead,
        contract_type: str,
        overrides: Optional[Mapping[str, Any]]
    ) -> Tuple[Any, ContractData]:
        with self._stage(run, "RiskAssessment", lead) as outcome:
            risk = self.risk_agent.assess(lead=lead)
            outcome["output"] = risk
        run.state = GenerationState.RISK_ASSESSED
        if self.observability and self.observability.metrics:
            self.observability.metrics.record_risk_score(risk.score)

        suggestions = None
        if self.drafting_agent is not None:
            with self._stage(run, "Drafting", lead) as outcome:
                suggestions = await self.drafting_agent.suggest_overrides(lead, contract_type)
                outcome["output"] = suggestions

        with self._stage(run, "ContractAssembly", {"lead": lead, "overrides": overrides}) as outcome:
            contract_data = self.assembly_agent.assemble(
                lead=lead,
                contract_type=contract_type,
                overrides=overrides,
                suggestions=suggestions,
            )
            outcome["output"] = contract_data
        run.state = GenerationState.ASSEMBLED
        return risk, contract_data

    async def _review(self, run: _Run, contract_data: ContractData, lead: Lead) -> AIReview:
        with self._stage(run, "LegalReview", contract_data) as outcome:
            review = await self.review_agent.review(
                contract_data=contract_data,
                template_meta=self.template_meta,
                lead=lead,
            )
            outcome["output"] = review
        if run.state == GenerationState.ASSEMBLED:
            run.state = GenerationState.REVIEWED
        if self.observability and self.observability.metrics:
            self.observability.metrics.record_review_source(review.source)
        return review

    async def _publish(self, run: _Run, contract_data: ContractData, html: str) -> PublishedDocument:
        with self._stage(run, "DocumentRendering", html) as outcome:
            document = await self.document_agent.publish(contract_data, html, lead_id=run.lead_id)
            outcome["output"] = document.url
        if document.warning:
            run.warnings.append(f"PDF document unavailable, inline HTML stored instead ({document.warning})")
        return document

    # Public entry points

    async def generate_preview(
        self,
        lead_id: str,
        contract_type: str = "standard",
        overrides: Optional[Mapping[str, Any]] = None
    ) -> PreviewResult:
        """Assemble, review and serialize a contract without persisting anything."""
        run = self._new_run(lead_id)
        preview_logger = get_request_logger(lead_id)
        preview_logger.info("Generating contract preview", contract_type=contract_type)

        try:
            lead = await self._load_lead(run, lead_id)
            risk, contract_data = await self._assess_and_assemble(run, lead, contract_type, overrides)
            with self._stage(run, "HtmlSerialization", contract_data) as outcome:
                html = render_contract_html(contract_data)
                outcome["output"] = html
            review = await self._review(run, contract_data, lead)
        except ContractGenError as e:
            preview_logger.warning("Contract preview failed", error=str(e), error_type=type(e).__name__)
            return PreviewResult(
                success=False,
                lead_id=lead_id,
                generation_time_ms=run.elapsed_ms(),
                errors=[str(e)],
                error_type=type(e).__name__,
            )
        except Exception as e:
            preview_logger.exception("Unexpected error during contract preview")
            return PreviewResult(
                success=False,
                lead_id=lead_id,
                generation_time_ms=run.elapsed_ms(),
                errors=[f"Unexpected error: {e}"],
                error_type=type(e).__name__,
            )
        finally:
            self._finish_run(run)

        return PreviewResult(
            success=True,
            lead_id=lead_id,
            generation_time_ms=run.elapsed_ms(),
            contract_data=contract_data,
            ai_review=review,
            risk=risk,
            html=html,
        )

    async def generate(
        self,
        lead_id: str,
        contract_type: str = "standard",
        expedited: bool = False,
        manual_review: bool = False,
        overrides: Optional[Mapping[str, Any]] = None
    ) -> GenerationResult:
        """Run the full pipeline for one lead and persist the contract.

        Never raises for pipeline failures; the result carries the errors,
        the last state reached and the stage traces.
        """
        run = self._new_run(lead_id)
        gen_logger = get_request_logger(lead_id)
        gen_logger.info(
            "Starting contract generation",
            contract_type=contract_type,
            expedited=expedited,
            manual_review=manual_review
        )

        try:
            lead = await self._load_lead(run, lead_id)
            risk, contract_data = await self._assess_and_assemble(run, lead, contract_type, overrides)
            html = render_contract_html(contract_data)

            review, document = await asyncio.gather(
                self._review(run, contract_data, lead),
                self._publish(run, contract_data, html),
            )
            run.state = GenerationState.RENDERED

            approval = evaluate_approval(review.confidence_score, risk.score, expedited, manual_review)
            record = await self._persist(run, lead, contract_data, review, risk.score, document, approval, expedited)
            run.state = (
                GenerationState.PENDING_REVIEW if approval.requires_manual_review
                else GenerationState.AUTO_APPROVED
            )
            if self.observability and self.observability.metrics:
                self.observability.metrics.record_approval_outcome(approval.status)

            if await self._update_lead_status(lead.id, approval.status, approval.requires_manual_review) is None:
                run.warnings.append("Lead contract status could not be updated")
            if await self._notify(lead, record, approval) is None:
                run.warnings.append("Client notification was not enqueued")

        except ContractGenError as e:
            gen_logger.warning(
                "Contract generation failed",
                state=run.state.value,
                error=str(e),
                error_type=type(e).__name__
            )
            return self._failure(run, str(e), type(e).__name__)
        except Exception as e:
            gen_logger.exception("Unexpected error during contract generation")
            return self._failure(run, f"Unexpected error: {e}", type(e).__name__)
        finally:
            self._finish_run(run)

        gen_logger.info(
            "Contract generation complete",
            contract_id=record.id,
            status=approval.status,
            risk_score=risk.score,
            confidence_score=review.confidence_score,
            generation_time_ms=record.generation_time_ms
        )
        return GenerationResult(
            success=True,
            lead_id=lead_id,
            state=run.state.value,
            generation_time_ms=record.generation_time_ms,
            contract_id=record.id,
            contract_reference=contract_data.contract_id,
            document_url=record.document_url,
            risk_score=risk.score,
            confidence_score=review.confidence_score,
            approval=approval,
            warnings=run.warnings,
            stage_traces=run.traces,
        )

    def _failure(self, run: _Run, error: str, error_type: str) -> GenerationResult:
        return GenerationResult(
            success=False,
            lead_id=run.lead_id,
            state=run.state.value,
            generation_time_ms=run.elapsed_ms(),
            errors=[error],
            error_type=error_type,
            warnings=run.warnings,
            stage_traces=run.traces,
        )

    async def _persist(
        self,
        run: _Run,
        lead: Lead,
        contract_data: ContractData,
        review: AIReview,
        risk_score: int,
        document: PublishedDocument,
        approval: ApprovalDecision,
        expedited: bool
    ) -> ContractRecord:
        now = datetime.now(timezone.utc)
        record = ContractRecord(
            id=str(uuid.uuid4()),
            lead_id=lead.id,
            contract_type=contract_data.contract_type,
            template_id=self.template_meta.id,
            generation_time_ms=run.elapsed_ms(),
            ai_confidence_score=review.confidence_score,
            legal_risk_score=risk_score,
            contract_data=contract_data,
            document_url=document.url,
            status=approval.status,
            auto_approved=approval.auto_approved,
            expedited=expedited,
            created_at=now,
            updated_at=now,
        )
        review_record = ContractReviewRecord(
            contract_id=record.id,
            confidence_score=review.confidence_score,
            risk_factors=review.risk_factors,
            recommendations=review.recommendations,
            warnings=review.warnings,
            compliance_check=review.compliance_check,
            manual_review_required=(
                approval.requires_manual_review
                or review_flag_required(review.confidence_score, risk_score)
            ),
            source=review.source,
        )

        with self._stage(run, "Persistence", record.id) as outcome:
            await self.stores.run(
                self.stores.records.save_contract,
                record,
                review_record,
                {"auto_approved": approval.auto_approved, "reasons": approval.reasons},
            )
            run.state = GenerationState.PERSISTED
            outcome["output"] = {"contract_id": record.id, "status": record.status}
        return record

    @graceful_degradation()
    async def _update_lead_status(self, lead_id: str, status: str, manual_review: bool) -> bool:
        updated = await self.stores.run(
            self.stores.records.update_lead_contract_status,
            lead_id,
            status,
            manual_review,
            datetime.now(timezone.utc),
        )
        if not updated:
            raise LeadNotFoundError(f"Lead {lead_id} disappeared before its status was updated")
        return True

    @graceful_degradation()
    async def _notify(self, lead: Lead, record: ContractRecord, approval: ApprovalDecision) -> Optional[int]:
        if not lead.whatsapp_number:
            get_request_logger(lead.id).warning("Lead has no WhatsApp number, skipping notification")
            return None
        approved = approval.status == "approved"
        notification = NotificationRecord(
            contract_id=record.id,
            lead_id=lead.id,
            type="contract_approved" if approved else "contract_generated",
            recipient=lead.whatsapp_number,
            message=APPROVED_MESSAGE if approved else GENERATED_MESSAGE,
        )
        return await self.stores.run(self.stores.records.insert_notification, notification)

    async def bulk_generate(
        self,
        lead_ids: Sequence[str],
        contract_type: str = "standard",
        expedited: bool = False,
        manual_review: bool = False,
        overrides: Optional[Mapping[str, Any]] = None,
        batch_size: int = 5
    ) -> BulkGenerationResult:
        """Generate contracts for several leads, ``batch_size`` at a time.

        Raises:
            ValueError: For an empty or oversized lead list or an invalid batch size
        """
        if not 1 <= len(lead_ids) <= MAX_BULK_LEADS:
            raise ValueError(f"Bulk generation accepts 1 to {MAX_BULK_LEADS} leads, got {len(lead_ids)}")
        if not 1 <= batch_size <= MAX_BULK_BATCH_SIZE:
            raise ValueError(f"Batch size must be between 1 and {MAX_BULK_BATCH_SIZE}, got {batch_size}")

        logger.info("Starting bulk contract generation", lead_count=len(lead_ids), batch_size=batch_size)
        results: List[GenerationResult] = []
        for start in range(0, len(lead_ids), batch_size):
            batch = lead_ids[start:start + batch_size]
            results.extend(await asyncio.gather(*(
                self.generate(lead_id, contract_type, expedited, manual_review, overrides)
                for lead_id in batch
            )))

        succeeded = sum(1 for result in results if result.success)
        logger.info("Bulk contract generation complete", succeeded=succeeded, failed=len(results) - succeeded)
        return BulkGenerationResult(
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            results=results,
        )

    # Contract management

    async def list_contracts(
        self,
        lead_id: Optional[str] = None,
        status: Optional[str] = None,
        contract_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[ContractRecord]:
        return await self.stores.run(
            self.stores.records.list_contracts, lead_id, status, contract_type, limit, offset
        )

    async def review_queue(
        self,
        status: Optional[str] = "pending_review",
        priority: Optional[str] = None,
        contract_type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> Dict[str, Any]:
        """Contracts awaiting review with their priority, plus summary counts.

        Priority is computed per contract, so every status-matched contract is
        prioritized and filtered before the page is cut. Summary counts cover
        the whole filtered queue, not just the page.
        """
        records = await self.stores.run(
            self.stores.records.list_contracts, None, status, contract_type, None, 0
        )
        prioritized: List[Tuple[str, ContractRecord]] = []
        for record in records:
            lead = await self.stores.run(self.stores.records.get_lead, record.lead_id)
            item_priority = calculate_review_priority(
                record.legal_risk_score,
                record.ai_confidence_score,
                record.expedited,
                lead.urgency_reason if lead else None,
                lead.price_range if lead else None,
            )
            if priority is None or item_priority == priority:
                prioritized.append((item_priority, record))

        # Stable sort keeps newest first within a priority
        prioritized.sort(key=lambda pair: PRIORITY_ORDER[pair[0]])

        items: List[ReviewQueueItem] = []
        for item_priority, record in prioritized[offset:offset + limit]:
            items.append(ReviewQueueItem(
                contract_id=record.id,
                lead_id=record.lead_id,
                contract_reference=record.contract_data.contract_id,
                contract_type=record.contract_type,
                status=record.status,
                priority=item_priority,
                legal_risk_score=record.legal_risk_score,
                ai_confidence_score=record.ai_confidence_score,
                client_name=record.contract_data.client.name,
                created_at=record.created_at,
                review=await self.stores.run(self.stores.records.get_review, record.id),
            ))

        status_counts = await self.stores.run(self.stores.records.count_contracts_by_status)
        summary = {
            "total": len(prioritized),
            "high_priority": sum(1 for p, _ in prioritized if p == "high"),
            "medium_priority": sum(1 for p, _ in prioritized if p == "medium"),
            "low_priority": sum(1 for p, _ in prioritized if p == "low"),
            "by_status": status_counts,
        }
        return {"items": items, "summary": summary}

    async def record_review_decision(
        self,
        contract_id: str,
        action: ReviewAction,
        reviewer: str,
        notes: Optional[str] = None
    ) -> ContractRecord:
        """Apply a specialist's decision to a contract under review.

        Raises:
            ContractNotFoundError: If the contract does not exist
            InvalidTransitionError: For an unknown action or a disallowed status change
        """
        target = status_for_action(action)
        record = await self.stores.run(self.stores.records.get_contract, contract_id)
        if record is None:
            raise ContractNotFoundError(f"Contract not found: {contract_id}")
        check_transition(record.status, target)

        updated = await self.stores.run(
            self.stores.records.update_contract_status,
            contract_id,
            record.status,
            target,
            f"review_{action}",
            {"reviewer": reviewer, "notes": notes},
        )
        if not updated:
            raise InvalidTransitionError(f"Contract {contract_id} was modified concurrently, retry the review")

        approved = target == "approved"
        await self.stores.run(
            self.stores.records.record_review_decision,
            contract_id,
            notes,
            reviewer if approved else None,
            datetime.now(timezone.utc) if approved else None,
            target == "pending_review",
        )

        if target != "pending_review":
            if await self._update_lead_status(record.lead_id, target, False) is None:
                logger.warning("Lead status not updated after review", contract_id=contract_id)
        if approved:
            lead = await self.stores.run(self.stores.records.get_lead, record.lead_id)
            if lead is not None:
                await self._notify(lead, record, ApprovalDecision(False, False, "approved"))

        logger.info("Review decision recorded", contract_id=contract_id, action=action, reviewer=reviewer)
        return await self.stores.run(self.stores.records.get_contract, contract_id)

    async def export_contract(self, contract_id: str, fmt: str = "json") -> Tuple[bytes, str]:
        """Export a stored contract as ``(content, media_type)``.

        HTML is re-rendered from the stored contract data.

        Raises:
            ContractNotFoundError: If the contract does not exist
            ValueError: For an unsupported format
        """
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unsupported export format '{fmt}', expected one of {', '.join(EXPORT_FORMATS)}")
        record = await self.stores.run(self.stores.records.get_contract, contract_id)
        if record is None:
            raise ContractNotFoundError(f"Contract not found: {contract_id}")

        if fmt == "html":
            return render_contract_html(record.contract_data).encode("utf-8"), "text/html; charset=utf-8"

        review = await self.stores.run(self.stores.records.get_review, contract_id)
        payload = {"contract": record, "review": review}
        return msgspec.json.encode(payload), "application/json"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def create_orchestrator(
    store_manager: Optional[StoreManager] = None,
    text_generator: Optional[TextGenerator] = None,
    enable_drafting: Optional[bool] = None,
    enable_observability: Optional[bool] = None
) -> ContractOrchestrator:
    """Factory function to create an orchestrator with environment-based configuration.

    Args:
        store_manager: Optional store manager (created from env vars if not provided)
        text_generator: Optional text generator (Gemini when GOOGLE_API_KEY is set)
        enable_drafting: Optional AI drafting flag (ENABLE_AI_DRAFTING if not provided)
        enable_observability: Optional tracing flag (ENABLE_OBSERVABILITY if not provided)

    Returns:
        Configured ContractOrchestrator instance
    """
    store_manager = store_manager or create_store_manager()

    api_key = os.getenv("GOOGLE_API_KEY")
    if text_generator is None and api_key:
        text_generator = GeminiTextGenerator(
            api_key=api_key,
            model_name=os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite"),
            timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
        )

    if enable_drafting is None:
        enable_drafting = _env_flag("ENABLE_AI_DRAFTING")
    if enable_observability is None:
        enable_observability = _env_flag("ENABLE_OBSERVABILITY", "true")

    pdf_options: PDFRenderOptions = msgspec.structs.replace(
        CONTRACT_PDF_OPTIONS,
        timeout_ms=int(os.getenv("PDF_RENDER_TIMEOUT_MS", str(CONTRACT_PDF_OPTIONS.timeout_ms))),
    )
    document_agent = DocumentAgent(
        renderer=PDFRenderer(get_browser_manager()),
        object_store=store_manager.documents,
        storage_timeout_seconds=float(os.getenv("STORAGE_TIMEOUT_SECONDS", "30")),
        pdf_options=pdf_options,
        inspector=PDFInspector(),
    )

    observability = None
    if enable_observability:
        observability = ObservabilityManager(
            trace_dir=os.path.join(os.getenv("LOG_DIR", "logs"), "traces")
        )

    return ContractOrchestrator(
        store_manager=store_manager,
        assembly_agent=ContractAssemblyAgent(contract_id_prefix=os.getenv("CONTRACT_ID_PREFIX", "VE")),
        review_agent=LegalReviewAgent(text_generator),
        document_agent=document_agent,
        drafting_agent=DraftingAgent(text_generator) if enable_drafting and text_generator else None,
        observability=observability,
    )
