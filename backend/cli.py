# ------------------------------ IMPORTS ------------------------------
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from core.config.settings import settings
from tgvmax.exceptions import ConfigError
from tgvmax.service import AccountOrchestrator

logger = logging.getLogger("tgvmax")

# ------------------------------ ARGUMENTS ------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Confirm pending MAX reservations for every configured account.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--confirm", dest="check_only", action="store_false", help="confirm pending reservations (default)")
    group.add_argument("--check", dest="check_only", action="store_true", help="only list reservations, never click")
    parser.set_defaults(check_only=False)
    return parser

# ------------------------------ MAIN ------------------------------

async def run_once(check_only: bool, orchestrator: Optional[AccountOrchestrator] = None) -> int:
    """One pass over all accounts. Returns the process exit code."""
    try:
        settings.validate()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    orchestrator = orchestrator or AccountOrchestrator()
    results = await orchestrator.run(settings.accounts, check_only=check_only)

    for result in results:
        logger.info(f"[{result.account_name}] {result.to_dict()}")

    return 0 if all(result.succeeded for result in results) else 1

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run_once(args.check_only))

if __name__ == "__main__":
    sys.exit(main())

# ------------------------------ END OF FILE ------------------------------
