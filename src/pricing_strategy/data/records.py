"""
Record Loader - Turns tabular exports into engine records.

The persistence layer owns the data; this module only adapts what it
hands over (DataFrames, CSV files, lists of dicts) into the dataclasses
the engine works with. Unparsable numbers become 0 rather than errors.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Union

import pandas as pd

from ..config.settings import get_settings, Settings
from ..engine.models import Category, Customer, SalesTransaction, PricingStrategy, to_float

Records = Union[pd.DataFrame, Iterable[dict], None]

# Accept the camelCase column names used by the API payloads
COLUMN_ALIASES = {
    'annualSpend': 'annual_spend',
    'customerName': 'customer_name',
    'materialCost': 'material_cost',
    'laborPercent': 'labor_percent',
    'laborCost': 'labor_cost',
    'categorySpend': 'category_spend',
    'transactionDate': 'date',
    'aliasName': 'alias',
    'canonicalName': 'customer_name',
}


def _to_frame(records: Records) -> pd.DataFrame:
    if records is None:
        return pd.DataFrame()
    frame = records.copy() if isinstance(records, pd.DataFrame) else pd.DataFrame(list(records))
    frame.columns = [COLUMN_ALIASES.get(str(c).strip(), str(c).strip()) for c in frame.columns]
    return frame


def _text(value) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ''
    return str(value).strip()


def _optional_float(value) -> Optional[float]:
    if value is None or (isinstance(value, float) and pd.isna(value)) or _text(value) == '':
        return None
    return to_float(value)


def _category_spend(value) -> Optional[dict[str, float]]:
    if isinstance(value, dict):
        return {str(k): to_float(v) for k, v in value.items()}
    text = _text(value)
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return _category_spend(parsed) if isinstance(parsed, dict) else None


def customers_from_records(records: Records) -> list[Customer]:
    frame = _to_frame(records)
    customers = []
    for idx, row in enumerate(frame.to_dict(orient='records')):
        name = _text(row.get('name'))
        if not name:
            continue
        customers.append(Customer(
            id=_text(row.get('id')) or f"cust_{idx}",
            name=name,
            group=_text(row.get('group')),
            territory=_text(row.get('territory')) or None,
            annual_spend=to_float(row.get('annual_spend')),
            category_spend=_category_spend(row.get('category_spend')),
        ))
    return customers


def categories_from_records(records: Records) -> list[Category]:
    frame = _to_frame(records)
    categories = []
    for idx, row in enumerate(frame.to_dict(orient='records')):
        name = _text(row.get('name'))
        if not name:
            continue
        categories.append(Category(
            id=_text(row.get('id')) or f"cat_{idx}",
            name=name,
            revenue=to_float(row.get('revenue')),
            material_cost=to_float(row.get('material_cost')),
            labor_percent=_optional_float(row.get('labor_percent')),
            labor_cost=_optional_float(row.get('labor_cost')),
        ))
    return categories


def transactions_from_records(records: Records) -> list[SalesTransaction]:
    frame = _to_frame(records)
    transactions = []
    for idx, row in enumerate(frame.to_dict(orient='records')):
        transactions.append(SalesTransaction(
            id=_text(row.get('id')) or f"tx_{idx}",
            customer_name=_text(row.get('customer_name')),
            category=_text(row.get('category')),
            amount=to_float(row.get('amount')),
            cogs=to_float(row.get('cogs')),
            date=_text(row.get('date')) or None,
        ))
    return transactions


def aliases_from_records(records: Records) -> dict[str, str]:
    """Alias rows (alias, customer_name) to a raw name -> canonical name map."""
    frame = _to_frame(records)
    aliases = {}
    for row in frame.to_dict(orient='records'):
        alias = _text(row.get('alias'))
        target = _text(row.get('customer_name'))
        if alias and target:
            aliases[alias] = target
    return aliases


@dataclass
class RecordSet:
    """Everything a calibration run consumes, plus a load report."""
    customers: list[Customer] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    transactions: list[SalesTransaction] = field(default_factory=list)
    aliases: dict[str, str] = field(default_factory=dict)
    strategy: Optional[PricingStrategy] = None
    report: dict = field(default_factory=dict)


def _read_csv(path: Path, report: dict, required: bool = True) -> Optional[pd.DataFrame]:
    if not path.exists():
        if required:
            report["errors"].append(f"{path.name} not found at {path}")
        else:
            report["warnings"].append(f"{path.name} not found, continuing without it")
        return None
    report["input_files"][path.name] = str(path)
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def load_record_set(settings: Optional[Settings] = None) -> RecordSet:
    """
    Load the record collections and strategy from the data directory.

    Returns a RecordSet whose report carries status, counts, warnings and
    errors; missing required files leave the status at 'failed'.
    """
    settings = settings or get_settings()
    report = {
        "timestamp": datetime.now().isoformat(),
        "status": "pending",
        "input_files": {},
        "metrics": {},
        "warnings": [],
        "errors": [],
    }
    records = RecordSet(report=report)

    customers = _read_csv(settings.customers_csv, report)
    categories = _read_csv(settings.categories_csv, report)
    sales = _read_csv(settings.sales_csv, report)
    aliases = _read_csv(settings.aliases_csv, report, required=False)

    if report["errors"]:
        report["status"] = "failed"
        return records

    records.customers = customers_from_records(customers)
    records.categories = categories_from_records(categories)
    records.transactions = transactions_from_records(sales)
    records.aliases = aliases_from_records(aliases)

    if settings.strategy_json.exists():
        with open(settings.strategy_json, 'r', encoding='utf-8') as f:
            records.strategy = PricingStrategy.from_dict(json.load(f))
        report["input_files"][settings.strategy_json.name] = str(settings.strategy_json)
    else:
        records.strategy = PricingStrategy.seed(settings)
        report["warnings"].append("No saved strategy found, starting from seed defaults")

    report["metrics"] = {
        "customers": len(records.customers),
        "categories": len(records.categories),
        "transactions": len(records.transactions),
        "aliases": len(records.aliases),
    }
    report["status"] = "success"
    return records
