"""
Contract Assembly Agent - Builds the unified contract model for a lead.

Every field is resolved in priority order:
    operator override -> AI drafting suggestion -> value derived from the lead -> platform default

Overrides arrive as a loose mapping (API body, CLI JSON). They are
validated into ``ContractOverrides`` before anything is built; a wrong
type or enum value raises ``AssemblyError``, unknown keys are logged and
ignored.
"""

import calendar
import secrets
import string
import time
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

import msgspec
from loguru import logger

from contractgen.error_handling import AssemblyError
from contractgen.logging_config import log_stage_execution
from contractgen.models import (
    CONTRACT_TYPES,
    AdditionalServices,
    ClientBlock,
    CommissionTerms,
    ContractData,
    ContractOverrides,
    Lead,
    LegalTerms,
    MarketingAuthorization,
    PropertyBlock,
    TermBlock,
)
from tools.price_parser import extract_estimated_value

GENERATED_BY = "VirtualEstate AI Contract Generator"
DEFAULT_COUNTRY = "Egypt"
DEFAULT_DURATION_MONTHS = 6
DEFAULT_TERMINATION_NOTICE_DAYS = 30
DEFAULT_NOTICE_PERIOD_HOURS = 24

_BASE36 = string.digits + string.ascii_uppercase
_OVERRIDE_FIELDS = frozenset(ContractOverrides.__struct_fields__)


def add_months(start: date, months: int) -> date:
    """Calendar-month addition, clamping the day to the target month's length.

    >>> add_months(date(2026, 1, 31), 1)
    datetime.date(2026, 2, 28)
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def generate_contract_id(prefix: str = "VE", now_ms: Optional[int] = None) -> str:
    """``{prefix}-{epoch_millis}-{6 random base36 chars}``."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}-{now_ms}-{suffix}"


def _format_size(value: float) -> str:
    return f"{value:g}"


def parse_overrides(raw: Optional[Mapping[str, Any]]) -> ContractOverrides:
    """Validate a loose override mapping.

    Raises:
        AssemblyError: If a known field has the wrong type or an invalid value
    """
    if raw is None:
        return ContractOverrides()
    if isinstance(raw, ContractOverrides):
        return raw
    if not isinstance(raw, Mapping):
        raise AssemblyError(f"Overrides must be a mapping, got {type(raw).__name__}")

    unknown = sorted(set(raw) - _OVERRIDE_FIELDS)
    if unknown:
        logger.warning("Ignoring unknown contract overrides", fields=unknown)

    known = {key: value for key, value in raw.items() if key in _OVERRIDE_FIELDS and value is not None}
    try:
        return msgspec.convert(known, ContractOverrides)
    except msgspec.ValidationError as e:
        raise AssemblyError(f"Invalid contract overrides: {e}") from e


def merge_overrides(*layers: ContractOverrides) -> ContractOverrides:
    """Merge override layers; earlier layers win field by field."""
    merged: Dict[str, Any] = {}
    for layer in reversed(layers):
        merged.update(_set_fields(layer))
    return ContractOverrides(**merged)


def _set_fields(overrides: ContractOverrides) -> Dict[str, Any]:
    return {
        name: getattr(overrides, name)
        for name in ContractOverrides.__struct_fields__
        if getattr(overrides, name) is not None
    }


class ContractAssemblyAgent:
    """Pure builder: (Lead, contract type, overrides) -> ContractData."""

    def __init__(
        self,
        contract_id_prefix: str = "VE",
        clock: Optional[Callable[[], datetime]] = None
    ):
        """Initialize the Contract Assembly Agent.

        Args:
            contract_id_prefix: Prefix of generated contract references
            clock: Returns the current aware datetime (injectable for tests)
        """
        self.contract_id_prefix = contract_id_prefix
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @log_stage_execution("ContractAssembly")
    def assemble(
        self,
        lead: Lead,
        contract_type: str = "standard",
        overrides: Optional[Mapping[str, Any]] = None,
        suggestions: Optional[ContractOverrides] = None
    ) -> ContractData:
        """Build the contract model for ``lead``.

        Args:
            lead: Source lead
            contract_type: One of the supported contract types
            overrides: Operator overrides (highest priority)
            suggestions: AI drafting suggestions (below operator overrides)

        Raises:
            AssemblyError: On an unsupported contract type or invalid overrides
        """
        if contract_type not in CONTRACT_TYPES:
            raise AssemblyError(
                f"Unsupported contract type '{contract_type}', expected one of {', '.join(CONTRACT_TYPES)}"
            )

        o = merge_overrides(parse_overrides(overrides), suggestions or ContractOverrides())
        now = self.clock()
        contract_id = generate_contract_id(self.contract_id_prefix, int(now.timestamp() * 1000))

        duration = o.contract_duration or DEFAULT_DURATION_MONTHS
        start_date = o.start_date or now.date()

        size = o.property_size_sqm or lead.property_size_sqm
        location = (lead.location or "").strip()

        contract = ContractData(
            contract_id=contract_id,
            generated_at=now,
            generated_by=GENERATED_BY,
            contract_type=contract_type,
            client=ClientBlock(
                name=o.client_name or lead.name,
                email=o.client_email or lead.email,
                phone=o.client_phone or lead.whatsapp_number,
                id_number=o.client_id_number,
            ),
            property=PropertyBlock(
                address=o.property_address or (f"{location}, {DEFAULT_COUNTRY}" if location else ""),
                property_type=o.property_type or lead.property_type,
                size_sqm=_format_size(size) if size else PropertyBlock().size_sqm,
                condition=o.property_condition or lead.property_condition or PropertyBlock().condition,
                listing_price=(
                    o.listing_price if o.listing_price is not None
                    else extract_estimated_value(lead.price_range)
                ),
                description=o.property_description,
            ),
            terms=TermBlock(
                contract_duration=duration,
                start_date=start_date,
                end_date=add_months(start_date, duration),
                termination_notice=_first_set(o.termination_notice, DEFAULT_TERMINATION_NOTICE_DAYS),
                notice_period=_first_set(o.notice_period, DEFAULT_NOTICE_PERIOD_HOURS),
            ),
            # Opt-out: a channel is authorized unless explicitly set to False
            marketing=MarketingAuthorization(
                marketing_authorization=o.marketing_authorization is not False,
                online_marketing=o.online_marketing is not False,
                social_media_marketing=o.social_media_marketing is not False,
                photography_authorization=o.photography_authorization is not False,
                virtual_tour_authorization=o.virtual_tour_authorization is not False,
                signage_authorization=o.signage_authorization is not False,
            ),
            commission=_build(CommissionTerms, o, (
                "commission_rate", "commission_structure", "payment_terms",
                "payment_due_date", "additional_fees",
            )),
            legal=_build(LegalTerms, o, ("legal_jurisdiction", "governing_law", "dispute_resolution")),
            services=_build(AdditionalServices, o, (
                "property_management", "maintenance_coordination", "tenant_screening",
            )),
        )

        logger.bind(lead_id=lead.id).info(
            "Contract assembled",
            contract_reference=contract_id,
            contract_type=contract_type,
            listing_price=contract.property.listing_price
        )
        return contract


def _first_set(value, default):
    return default if value is None else value


def _build(block_type, overrides: ContractOverrides, fields):
    """Instantiate a block using the overrides that are set and the block defaults otherwise."""
    values = {name: getattr(overrides, name) for name in fields if getattr(overrides, name) is not None}
    return block_type(**values)
