"""
Group contacts into venue clusters under a per-session API budget.

Usage:
    python group_contacts.py contacts.json --mode balanced --budget 0.10 \
        --city "San Francisco" --output clusters.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

# Load environment variables from .env file
from dotenv import load_dotenv
from pydantic import ValidationError

from src.budget import estimate_session_cost
from src.cache import ResultCache
from src.geo import load_radius_policy_from_yaml
from src.grouping import GroupingOrchestrator, load_contacts_file
from src.schemas import SessionConfig
from src.tools import ConfigurationError

logger = logging.getLogger("group_contacts")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Infer which contacts met at the same venue")
    parser.add_argument("contacts", help="JSON file with a list of contacts (or {\"contacts\": [...]})")
    parser.add_argument("--mode", choices=["budget", "balanced", "premium"],
                        help="Performance preset (default: GROUPING_MODE or balanced)")
    parser.add_argument("--budget", type=float, help="Dollar limit for paid Places API calls")
    parser.add_argument("--city", help="City used for radius multipliers and text queries")
    parser.add_argument("--max-locations", type=int, help="Top-K locations eligible for paid search")
    parser.add_argument("--tier", choices=["minimal", "standard", "enhanced"], help="Field-mask tier override")
    parser.add_argument("--output", help="Write clusters and the session report to this JSON file")
    parser.add_argument("--estimate", action="store_true", help="Print the upfront cost estimate and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


async def run(args: argparse.Namespace) -> int:
    config = SessionConfig.from_mode(
        args.mode,
        budget_limit=args.budget,
        city=args.city,
        max_locations=args.max_locations,
        field_tier=args.tier,
    )
    contacts = load_contacts_file(args.contacts)

    if args.estimate:
        estimate = estimate_session_cost(
            len(contacts),
            tier=config.field_tier,
            enable_text_search=config.enable_text_search,
            budget_limit=config.budget_limit,
            max_locations=config.max_locations,
        )
        print(json.dumps(estimate, indent=2))
        return 0

    orchestrator = GroupingOrchestrator.for_session(
        config,
        ResultCache(),
        radius_policy=load_radius_policy_from_yaml(),
    )
    clusters, report = await orchestrator.group(contacts)

    output = {
        "clusters": [c.to_dict() for c in clusters],
        "report": report.model_dump(mode="json"),
    }
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(output, f, ensure_ascii=False, indent=2)
        print(f"Wrote {len(clusters)} clusters to {args.output}")
    else:
        print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args))
    except (ConfigurationError, ValidationError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
