#!/usr/bin/env python3
"""
Run (or preview) automatic termination for one new contract.

Used for backfills and manual repair when the contract-creation workflow
failed after the new contract was stored. Safe to re-run: contracts already
terminated by the same new contract are skipped.

Usage:
    python scripts/run_auto_termination.py TMB --sector <sector-id> \\
        --service-start 2025-07-01 --contract-id 42 --contract-number TMB-2025-07
    python scripts/run_auto_termination.py DISPOSAL --sector <id1> --sector <id2> \\
        --service-start 2025-07-01 --contract-id 42 --dry-run
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Add parent dir to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv
load_dotenv()

from db.database import close_connection_pool, init_connection_pool
from models.contract_lifecycle import ContractType
from services.contract_termination import ContractTerminationService

logger = logging.getLogger("run_auto_termination")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Automatic contract termination")
    parser.add_argument(
        "contract_type",
        choices=[t.value for t in ContractType],
        help="Contract family of the new contract",
    )
    parser.add_argument(
        "--sector", action="append", dest="sectors", default=[],
        help="Sector ID (repeat for disposal contracts)",
    )
    parser.add_argument("--service-start", required=True, help="Service start date (YYYY-MM-DD)")
    parser.add_argument("--contract-id", required=True, help="ID of the new contract")
    parser.add_argument("--contract-number", help="Number of the new contract")
    parser.add_argument("--user-id", help="User recorded as amendment author")
    parser.add_argument(
        "--isolation-level", default="READ COMMITTED",
        help="Transaction isolation level",
    )
    parser.add_argument("--dry-run", action="store_true", help="List candidates only")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    log_level = "DEBUG" if args.verbose else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    contract_id = int(args.contract_id) if args.contract_id.isdigit() else args.contract_id
    sector_scope = args.sectors

    db = init_connection_pool()
    try:
        service = ContractTerminationService(db, isolation_level=args.isolation_level)
        if args.dry_run:
            candidates = service.preview_overlapping(
                args.contract_type, sector_scope, args.service_start, contract_id
            )
            output = [c.model_dump(mode="json") for c in candidates]
            logger.info(f"{len(candidates)} contracts would be terminated")
        else:
            result = service.terminate_overlapping(
                args.contract_type,
                sector_scope,
                args.service_start,
                contract_id,
                args.contract_number,
                args.user_id,
            )
            output = result.model_dump(mode="json")
    finally:
        close_connection_pool()

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
