#!/usr/bin/env python3
"""Command-line entry point for the VirtualEstate Contract Generator.

Subcommands:
- import-leads: load leads from a JSON file into the database
- preview: assemble and review a contract without persisting it
- generate: run the full pipeline for one lead
- queue: show contracts awaiting specialist review
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

import msgspec
from dotenv import load_dotenv
from loguru import logger

from contractgen.error_handling import ContractGenError
from contractgen.logging_config import setup_logging
from contractgen.models import CONTRACT_TYPES, Lead
from contractgen.orchestrator import ContractOrchestrator, create_orchestrator
from storage.store_manager import StoreManager, create_store_manager
from tools.pdf_renderer import shutdown_browser


def _print_json(value) -> None:
    print(msgspec.json.format(msgspec.json.encode(value), indent=2).decode("utf-8"))


def _load_overrides(path: Optional[str]) -> Optional[dict]:
    if not path:
        return None
    return msgspec.json.decode(Path(path).read_bytes())


def import_leads(store_manager: StoreManager, path: str) -> int:
    """Upsert every lead in a JSON array file; returns the number imported."""
    leads = msgspec.json.decode(Path(path).read_bytes(), type=List[Lead])
    for lead in leads:
        store_manager.records.upsert_lead(lead)
    logger.info(f"Imported {len(leads)} leads", path=path)
    return len(leads)


async def run_command(args: argparse.Namespace, orchestrator: ContractOrchestrator) -> int:
    """Execute a pipeline subcommand; the shared browser is always shut down."""
    try:
        if args.command == "preview":
            result = await orchestrator.generate_preview(
                args.lead_id, args.contract_type, _load_overrides(args.overrides)
            )
            if result.success and args.output:
                Path(args.output).write_text(result.html, encoding="utf-8")
                logger.info("Preview HTML written", output=args.output)
            _print_json({
                "success": result.success,
                "lead_id": result.lead_id,
                "contract_reference": result.contract_data.contract_id if result.contract_data else None,
                "risk": result.risk,
                "ai_review": result.ai_review,
                "generation_time_ms": result.generation_time_ms,
                "errors": result.errors,
            })
            return 0 if result.success else 1

        if args.command == "generate":
            result = await orchestrator.generate(
                args.lead_id,
                args.contract_type,
                args.expedited,
                args.manual_review,
                _load_overrides(args.overrides),
            )
            _print_json(result)
            return 0 if result.success else 1

        if args.command == "queue":
            queue = await orchestrator.review_queue(priority=args.priority, limit=args.limit)
            _print_json(queue)
            return 0

        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await shutdown_browser()


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="VirtualEstate Contract Generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load leads exported from the CRM
  python -m contractgen.main import-leads leads.json

  # Preview a contract and save its HTML
  python -m contractgen.main preview LEAD_ID --output preview.html

  # Generate an exclusive listing contract that always goes to a specialist
  python -m contractgen.main generate LEAD_ID --contract-type exclusive_listing --manual-review

  # Show high-priority contracts awaiting review
  python -m contractgen.main queue --priority high
        """
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=os.getenv("LOG_DIR", "logs"),
        help="Directory for log files (default: logs)"
    )

    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="Database path (default: from DATABASE_URL env var or contract_generator.db)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import-leads", help="Import leads from a JSON array file")
    import_parser.add_argument("path", help="JSON file containing a list of leads")

    for name, help_text in (("preview", "Preview a contract without saving it"),
                            ("generate", "Generate, store and route a contract")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("lead_id", help="Lead identifier")
        sub.add_argument(
            "--contract-type",
            choices=CONTRACT_TYPES,
            default="standard",
            help="Contract type (default: standard)"
        )
        sub.add_argument("--overrides", help="JSON file with field overrides")
        if name == "preview":
            sub.add_argument("--output", help="Write the preview HTML to this file")
        else:
            sub.add_argument("--expedited", action="store_true", help="Expedited request (never auto-approved)")
            sub.add_argument("--manual-review", action="store_true", help="Always route to a specialist")

    queue_parser = subparsers.add_parser("queue", help="List contracts awaiting review")
    queue_parser.add_argument("--priority", choices=["high", "medium", "low"], help="Filter by priority")
    queue_parser.add_argument("--limit", type=int, default=20, help="Maximum contracts to show (default: 20)")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    load_dotenv()
    args = parse_arguments(argv)
    setup_logging(log_dir=args.log_dir, level=args.log_level)

    try:
        store_manager = create_store_manager(db_path=args.db_path)
        if args.command == "import-leads":
            import_leads(store_manager, args.path)
            return 0

        orchestrator = create_orchestrator(store_manager=store_manager)
        return asyncio.run(run_command(args, orchestrator))

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130

    except (ContractGenError, msgspec.DecodeError, msgspec.ValidationError, OSError) as e:
        logger.error(f"Command failed: {e}")
        return 1

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
