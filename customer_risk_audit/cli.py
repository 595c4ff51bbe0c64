"""Command line entry points for the customer risk audit toolkit."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import pandas as pd

from customer_risk_audit.foundation.metric_record import (
    CustomerIdentity,
    LTVSourceRow,
    RFMSourceRow,
    integrate_customer_metrics,
    parse_source_rows,
)
from customer_risk_audit.pipeline import (
    AnalysisOptions,
    SegmentationResult,
    analyze_customer_segments,
)

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM
SNAPSHOT_COLLECTIONS = ("rfm", "ltv", "customers")


def load_snapshot(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Read a ``{rfm, ltv, customers}`` JSON snapshot; missing lists become empty."""
    resolved = path.resolve()
    size = resolved.stat().st_size
    if size > MAX_INPUT_BYTES:
        raise ValueError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes"
        )
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object with rfm, ltv and customers lists")

    snapshot: dict[str, list[dict[str, Any]]] = {}
    for name in SNAPSHOT_COLLECTIONS:
        rows = payload.get(name) or []
        if not isinstance(rows, list):
            raise ValueError(f"Snapshot field '{name}' must be a list")
        snapshot[name] = rows
    return snapshot


def _resolve_output(path: Path) -> Path:
    output_path = path.resolve()
    cwd = Path.cwd().resolve()
    try:
        output_path.relative_to(cwd)
    except ValueError:
        raise ValueError(
            f"Output path {output_path} must reside within the current working directory"
        )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path


def churn_risks_frame(result: SegmentationResult) -> pd.DataFrame:
    """Flatten churn risk assessments into one row per customer."""
    columns = [
        "customer_id",
        "customer_name",
        "last_order_date",
        "days_since_last_order",
        "risk_score",
        "risk_level",
        "contributing_factors",
        "retention_probability",
        "current_ltv",
        "potential_loss_value",
    ]
    rows = [
        {
            "customer_id": risk.customer_id,
            "customer_name": risk.customer_name,
            "last_order_date": (
                risk.last_order_date.isoformat() if risk.last_order_date else None
            ),
            "days_since_last_order": risk.days_since_last_order,
            "risk_score": risk.risk_score,
            "risk_level": risk.risk_level.value,
            "contributing_factors": ";".join(
                factor.factor for factor in risk.contributing_factors
            ),
            "retention_probability": float(risk.retention_probability),
            "current_ltv": float(risk.current_ltv),
            "potential_loss_value": float(risk.potential_loss_value),
        }
        for risk in result.churn_risks
    ]
    return pd.DataFrame(rows, columns=columns)


def analyze_snapshot_cli(argv: list[str] | None = None) -> int:
    """Score churn risk and value growth for a metrics snapshot.

    The snapshot is a JSON object holding the three store collections:
    ``rfm`` (RFM and lifecycle rows), ``ltv`` (LTV rows) and ``customers``
    (identity rows). Results are written as JSON, optionally with a CSV
    export of the churn risk assessments.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        prog="customer-risk-audit analyze",
        description="Score churn risk and value growth for a metrics snapshot",
    )
    parser.add_argument(
        "input", type=Path, help="Path to JSON snapshot with rfm, ltv and customers"
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Optional path for writing the analysis result as JSON.",
    )
    parser.add_argument(
        "--csv",
        type=Path,
        help="Optional path for exporting churn risk assessments as CSV.",
    )
    parser.add_argument(
        "--no-churn-risk",
        dest="include_churn_risk",
        action="store_false",
        help="Skip churn risk scoring.",
    )
    parser.add_argument(
        "--no-value-growth",
        dest="include_value_growth",
        action="store_false",
        help="Skip value growth projection.",
    )
    parser.add_argument(
        "--no-recommendations",
        dest="include_recommendations",
        action="store_false",
        help="Skip portfolio recommendations.",
    )

    args = parser.parse_args(argv)

    logger.info(f"Loading metrics snapshot from {args.input}")
    snapshot = load_snapshot(args.input)

    records = integrate_customer_metrics(
        parse_source_rows(snapshot["rfm"], RFMSourceRow),
        parse_source_rows(snapshot["ltv"], LTVSourceRow),
        parse_source_rows(snapshot["customers"], CustomerIdentity),
    )
    if not records:
        logger.warning("No customers with RFM metrics found in snapshot")

    options = AnalysisOptions(
        include_churn_risk=args.include_churn_risk,
        include_value_growth=args.include_value_growth,
        include_recommendations=args.include_recommendations,
    )
    result = analyze_customer_segments(records, options)
    payload = result.as_dict()

    if args.output:
        output_path = _resolve_output(args.output)
        with output_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, sort_keys=True)
        logger.info(f"Analysis result written to {output_path}")
    else:  # stdout fallback enables piping in shell usage.
        json.dump(payload, fp=sys.stdout, indent=2, sort_keys=True)
        print()

    if args.csv:
        csv_path = _resolve_output(args.csv)
        churn_risks_frame(result).to_csv(csv_path, index=False)
        logger.info(
            f"Exported {len(result.churn_risks)} churn risk assessments to {csv_path}"
        )

    return 0


COMMANDS = {"analyze": analyze_snapshot_cli}


def main(argv: list[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or argv[0] not in COMMANDS:
        print(
            f"usage: customer-risk-audit {{{','.join(COMMANDS)}}} ...",
            file=sys.stderr,
        )
        raise SystemExit(2)
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    raise SystemExit(COMMANDS[argv[0]](argv[1:]))


if __name__ == "__main__":  # pragma: no cover
    main()
