"""HTML serializer for the unified property service agreement.

The markup lives in ``templates/contract.html`` and is rendered through an
autoescaping Jinja2 environment. ``render_contract_html`` is a pure
function of ``ContractData``: the same contract always yields
byte-identical markup. The generation date shown in the header is the
contract's own ``generated_at``, never the clock. Absent values render as
explicit tokens through the ``or_token`` filter.
"""

from pathlib import Path
from typing import Any, List, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from contractgen.models import ContractData

TEMPLATE_DIR = Path(__file__).parent / "templates"
CONTRACT_TEMPLATE = "contract.html"

COMPANY_NAME = "VirtualEstate"
TO_BE_DETERMINED = "To be determined"

MARKETING_LABELS: List[Tuple[str, str]] = [
    ("marketing_authorization", "General Marketing Authorization"),
    ("online_marketing", "Online Property Portals"),
    ("social_media_marketing", "Social Media Marketing"),
    ("photography_authorization", "Professional Photography"),
    ("virtual_tour_authorization", "Virtual Tours & 3D Imagery"),
    ("signage_authorization", "Property Signage"),
]

SERVICE_LABELS: List[Tuple[str, str]] = [
    ("property_management", "Property Management Services"),
    ("maintenance_coordination", "Maintenance Coordination"),
    ("tenant_screening", "Tenant Screening Services"),
]

DISPUTE_RESOLUTION_LABELS = {
    "mediation": "mediation",
    "arbitration": "binding arbitration",
    "court": "the competent courts",
}


def or_token(value: Any, token: str) -> str:
    """The value as text, or ``token`` for None and blank strings."""
    if value is None:
        return token
    text = str(value).strip()
    return text or token


def format_price(price: float) -> str:
    """Whole-number price with thousands separators, or a placeholder for zero."""
    if not price or price <= 0:
        return TO_BE_DETERMINED
    return f"{price:,.0f} EGP"


def format_date(value) -> str:
    return value.strftime("%B %d, %Y").replace(" 0", " ")


def _build_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["or_token"] = or_token
    env.filters["price"] = format_price
    env.filters["long_date"] = format_date
    return env


_env = _build_env()


def _view(contract_data: ContractData) -> dict:
    """Labels and derived values the template does not compute itself."""
    size = contract_data.property.size_sqm
    legal = contract_data.legal
    return {
        "company": COMPANY_NAME,
        "data": contract_data,
        "size": f"{size} square meters" if size and size != TO_BE_DETERMINED else TO_BE_DETERMINED,
        "marketing": [(label, getattr(contract_data.marketing, field)) for field, label in MARKETING_LABELS],
        "services": [label for field, label in SERVICE_LABELS if getattr(contract_data.services, field)],
        "commission_structure": contract_data.commission.commission_structure.replace("_", " ").title(),
        "dispute_resolution": DISPUTE_RESOLUTION_LABELS.get(legal.dispute_resolution, legal.dispute_resolution),
    }


def render_contract_html(contract_data: ContractData) -> str:
    """Serialize a contract into a complete, styled HTML document."""
    return _env.get_template(CONTRACT_TEMPLATE).render(**_view(contract_data))
