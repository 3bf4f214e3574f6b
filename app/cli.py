"""
Command-line entry point: load a bundle, compute and commit its ledger, print
summary metrics and (optionally) the investment analysis.

Examples:
  bizplan-engine project.json
  bizplan-engine project.json --scenario stress --analysis --rate 0.10
  bizplan-engine project.json --all-scenarios --output results.xlsx
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from analysis.decisions import generate_decision_report
from analysis.metrics import compare_scenarios, compute_project_metrics
from core.config import EngineConfig
from core.errors import EngineError
from data_prep.loader import load_bundle, load_sales_csv
from data_prep.records import CalculationTrigger
from data_prep.validators import validate_bundle
from engine.service import ProjectionService

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bizplan-engine",
        description="Business-plan projection and investment analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1],
    )
    parser.add_argument("bundle", help="Path to the project's assumption bundle (JSON)")
    parser.add_argument("--scenario", "-s", default=None, help="Scenario id (default: base case)")
    parser.add_argument(
        "--all-scenarios",
        action="store_true",
        help="Recalculate the base case and every scenario, then compare them",
    )
    parser.add_argument("--sales", default=None, help="CSV sales sheet replacing the bundle's sales projections")
    parser.add_argument("--output", "-o", default=None, help="Write the monthly ledger to a .csv or .xlsx file")
    parser.add_argument("--analysis", "-a", action="store_true", help="Run the investment analysis")
    parser.add_argument("--rate", "-r", type=float, default=None, help="Annual discount rate (default: WACC)")
    parser.add_argument(
        "--discount-convention",
        choices=["nominal", "effective"],
        default="nominal",
        help="Monthly discount rate: annual/12 (nominal) or (1+annual)^(1/12)-1 (effective)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser


def _write_output(path: Path, sheets: Dict[str, pd.DataFrame]) -> None:
    if path.suffix.lower() in (".xlsx", ".xlsm"):
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for name, df in sheets.items():
                df.to_excel(writer, sheet_name=name[:31], index=name != "Ledger")
    else:
        sheets["Ledger"].to_csv(path, index=False)
    logger.info("Created: %s", path)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = EngineConfig(discount_convention=args.discount_convention)
    service = ProjectionService(config=config)

    try:
        bundle = load_bundle(args.bundle)
        if args.sales:
            bundle = bundle.model_copy(update={"sales": load_sales_csv(args.sales)})

        checks = validate_bundle(bundle)
        print(checks.summary())
        if not checks.is_valid:
            return 2

        sheets: Dict[str, pd.DataFrame] = {}
        if args.all_scenarios:
            report = service.recalculate_scenarios(bundle)
            for scenario_id, message in report.failures.items():
                print(f"scenario {scenario_id or 'base'} failed: {message}")
            frames = {
                (sid or "base"): service.store.read((bundle.project.id, sid)).to_frame()
                for sid in report.outcomes
            }
            if not frames:
                return 1
            rate = bundle.assumptions.wacc if args.rate is None else args.rate
            comparison = compare_scenarios(frames, rate, config)
            print(comparison["table"].T.to_string())
            print(json.dumps(comparison["comparison"], indent=2, default=str))
            sheets["Ledger"] = pd.concat(frames.values(), ignore_index=True)
            sheets["Comparison"] = comparison["table"]
        else:
            trigger = CalculationTrigger(
                project_id=bundle.project.id,
                scenario_id=args.scenario,
                force_recalculation=True,
            )
            service.trigger(bundle, trigger)
            frame = service.store.read((bundle.project.id, args.scenario)).to_frame()
            metrics = compute_project_metrics(frame)
            print(json.dumps(metrics, indent=2, default=str))
            sheets["Ledger"] = frame
            sheets["Metrics"] = pd.DataFrame([metrics]).T.rename(columns={0: "value"})

            if args.analysis:
                analysis = service.analyze(bundle, args.scenario, args.rate)
                print(json.dumps(analysis.to_dict(), indent=2, default=str))
                decision = generate_decision_report(frame, analysis, loans=bundle.loans)
                print(decision.to_dataframe().to_string(index=False))
                sheets["Decision"] = decision.to_dataframe().set_index("Metric")

        if args.output:
            _write_output(Path(args.output), sheets)
    except (EngineError, OSError) as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
