#!/usr/bin/env python3
"""
Start a region discovery
Tiles a bounding box into grid cells and enqueues one grid-search job per cell

Usage:
    python scripts/start_discovery.py "Halifax, NS" --ne 44.70,-63.50 --sw 44.60,-63.65 [--category restaurant]
"""

import argparse
import sys

from localinsights.features.discovery.schemas.grid_search import Bounds, Coordinates
from localinsights.platform.db.session import get_session_factory
from localinsights.platform.exceptions import PipelineError
from localinsights.platform.logger import get_logger
from localinsights.workers.orchestrator import plan_region_search

logger = get_logger("start_discovery")


def parse_point(value: str) -> Coordinates:
    try:
        lat, lng = (float(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected 'lat,lng', got '{value}'")
    return Coordinates(lat=lat, lng=lng)


def main():
    parser = argparse.ArgumentParser(description="Plan and enqueue a region discovery")
    parser.add_argument("location", help="City or region name stored on each grid")
    parser.add_argument("--ne", required=True, type=parse_point, help="Northeast corner as lat,lng")
    parser.add_argument("--sw", required=True, type=parse_point, help="Southwest corner as lat,lng")
    parser.add_argument("--category", default=None, help="Places type filter, e.g. restaurant")
    args = parser.parse_args()

    try:
        bounds = Bounds(northeast=args.ne, southwest=args.sw)
    except ValueError as e:
        parser.error(str(e))

    try:
        plan = plan_region_search(get_session_factory(), args.location, bounds, args.category)
    except PipelineError as e:
        logger.error(f"Could not start discovery: {e}")
        sys.exit(1)

    logger.info(f"Scraper run {plan.scraper_run_id}: {len(plan.grid_ids)} grids, {len(plan.job_ids)} jobs enqueued")


if __name__ == "__main__":
    main()
