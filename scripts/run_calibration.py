#!/usr/bin/env python
"""
Calibration pipeline - loads records, recalibrates tier discounts, saves the strategy.

Usage:
    python scripts/run_calibration.py

Reads customers.csv, categories.csv, sales.csv (and optionally
customer_aliases.csv / pricing_strategy.json) from the data directory
(PRICING_DATA_DIR, default ./data).
"""
import json
import logging
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from pricing_strategy.config.settings import get_settings
from pricing_strategy.data.records import load_record_set
from pricing_strategy.services.margin_alerts import MarginAlertScanner
from pricing_strategy.services.strategy_service import JsonStrategyStore, StrategyService


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    settings = get_settings()

    print("=" * 60)
    print("PRICING STRATEGY CALIBRATION")
    print("=" * 60)
    print()

    print("[1/3] Loading records...")
    records = load_record_set(settings)
    if records.report["status"] != "success":
        print("\n❌ LOAD FAILED")
        for error in records.report["errors"]:
            print(f"  ERROR: {error}")
        sys.exit(1)
    for warning in records.report["warnings"]:
        print(f"  WARNING: {warning}")

    service = StrategyService(settings, JsonStrategyStore(settings.strategy_json))
    service.replace(records.strategy)

    print()
    print("[2/3] Calibrating tier discounts...")
    try:
        result = service.calibrate(
            records.transactions, records.customers, records.categories, records.aliases
        )
    except ValueError as e:
        print(f"\n❌ CALIBRATION FAILED: {e}")
        sys.exit(1)

    print()
    print("[3/3] Checking margins...")
    alerts = MarginAlertScanner(settings).scan(service.strategy, records.categories)
    validation = service.validate()

    print()
    print("=" * 60)
    print("✅ CALIBRATION COMPLETE")
    print("=" * 60)
    print()
    print("Summary:")
    for name, value in result.report.metrics.items():
        print(f"  {name}: {value}")
    print(f"  margin_alerts: {len(alerts)}")
    print(f"  validation: {'ok' if validation.valid else 'errors'}")

    if result.report.warnings:
        print()
        print("Warnings:")
        for warning in result.report.warnings:
            print(f"  ⚠️ {warning}")

    report_path = settings.data_dir / 'calibration_report.json'
    with open(report_path, 'w', encoding='utf-8') as f:
        json.dump(result.report.to_dict(), f, indent=2)
    print()
    print(f"Strategy saved to: {settings.strategy_json}")
    print(f"Report saved to: {report_path}")


if __name__ == "__main__":
    main()
