"""Tools package for contract generation utilities."""

from tools.price_parser import extract_estimated_value, has_million_marker
from tools.risk_rule_lookup import RiskRuleLookup
from tools.contract_html import render_contract_html
from tools.pdf_renderer import BrowserManager, PDFRenderer, PDFRenderOptions, get_browser_manager, shutdown_browser
from tools.pdf_inspector import PDFInspector
from tools.text_generation import GeminiTextGenerator, TextGenerator

__all__ = [
    "extract_estimated_value",
    "has_million_marker",
    "RiskRuleLookup",
    "render_contract_html",
    "BrowserManager",
    "PDFRenderer",
    "PDFRenderOptions",
    "get_browser_manager",
    "shutdown_browser",
    "PDFInspector",
    "GeminiTextGenerator",
    "TextGenerator",
]
