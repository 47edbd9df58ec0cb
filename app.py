"""
UPH Rates - Main Application

Loads work cycles (from the MES database or a CSV export), computes labor
rates per operator, category and routing, and prints them:

    python app.py --window 30 --category Assembly
    python app.py --csv export.csv --anomalies
"""

import argparse
import logging
import sys
from typing import List, Optional

import pandas as pd

from utils.config import configure_logging, get_app_config, load_config, validate_config
from utils.formatting import anomalies_to_dataframe, format_timestamp, results_to_dataframe
from core.db.fetchers import WorkCycleSource
from core.db.pool import close_pool
from core.ingest.records import observations_from_frame
from core.service.rates import RateQueryService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute operator labor rates (units per hour).")
    parser.add_argument("--window", type=int, default=None, help="Rolling window in days (7, 30 or 180).")
    parser.add_argument("--routing", type=str, default=None, help="Only this routing.")
    parser.add_argument("--category", type=str, default=None, help="Only this category.")
    parser.add_argument("--operator-id", type=int, default=None, help="Only this operator.")
    parser.add_argument("--csv", type=str, default=None, help="Read work cycles from a CSV export instead of the MES.")
    parser.add_argument("--anomalies", action="store_true", help="Also list excluded manufacturing orders.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_config()
    configure_logging()
    settings = get_app_config()
    window_days = args.window or settings["default_window_days"]

    if args.csv:
        service = RateQueryService.from_config()
        service.import_observations(observations_from_frame(pd.read_csv(args.csv)))
    else:
        config_errors = validate_config()
        if config_errors:
            for error in config_errors:
                logger.error(error)
            return 1
        service = RateQueryService.from_config(source=WorkCycleSource())
        try:
            refreshed = service.refresh_from_source()
        finally:
            close_pool()
        if refreshed is None:
            logger.error("No work cycles imported from the MES")
            return 1

    try:
        results = service.get_cohort_rates(
            routing=args.routing,
            category=args.category,
            operator_id=args.operator_id,
            window_days=window_days
        )
    except ValueError as e:
        logger.error(str(e))
        return 2

    if not results:
        print("No data")
        return 0

    print(f"Rates over the last {window_days} days (computed {format_timestamp(results[0].computed_at)})")
    print(results_to_dataframe(results).to_string(index=False))

    if args.anomalies:
        anomalies = [a for r in results for a in r.anomalies]
        print(f"\nExcluded manufacturing orders: {len(anomalies)}")
        if anomalies:
            print(anomalies_to_dataframe(anomalies).to_string(index=False))

    return 0


if __name__ == "__main__":
    sys.exit(main())
