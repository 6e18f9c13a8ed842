import json

import pandas as pd
import pytest

from pricing_strategy.config.settings import Settings
from pricing_strategy.data.records import (
    aliases_from_records,
    categories_from_records,
    customers_from_records,
    load_record_set,
    transactions_from_records,
)


def test_customers_from_camel_case_frame():
    frame = pd.DataFrame([
        {"id": "c1", "name": " Acme Roofing ", "group": "Dealer", "annualSpend": "$2,500,000",
         "categorySpend": '{"FC36": 1200}'},
        {"id": None, "name": "Prairie Builders", "group": "Dealer", "annualSpend": "n/a",
         "categorySpend": "not json"},
        {"id": "c3", "name": "", "group": "Dealer", "annualSpend": 10},
    ])
    customers = customers_from_records(frame)

    assert [c.name for c in customers] == ["Acme Roofing", "Prairie Builders"]
    assert customers[0].annual_spend == 2_500_000
    assert customers[0].category_spend == {"FC36": 1200.0}
    assert customers[1].id == "cust_1"
    assert customers[1].annual_spend == 0.0
    assert customers[1].category_spend is None


def test_categories_from_dicts():
    categories = categories_from_records([
        {"id": "k1", "name": "FC36", "revenue": "1000", "materialCost": "600", "laborCost": ""},
        {"name": "Clips", "revenue": 50, "laborPercent": "0.1"},
    ])

    assert categories[0].material_cost == 600.0
    assert categories[0].labor_cost is None
    assert categories[1].id == "cat_1"
    assert categories[1].labor_percent == pytest.approx(0.1)
    assert categories[1].group == "Parts"


def test_transactions_from_dicts():
    transactions = transactions_from_records([
        {"customerName": "Acme Roofing", "category": " FC36 ", "amount": "1,000", "cogs": "800",
         "transactionDate": "2024-03-01"},
    ])

    tx = transactions[0]
    assert tx.id == "tx_0"
    assert tx.category == "FC36"
    assert tx.amount == 1000.0
    assert tx.date == "2024-03-01"


def test_aliases_skip_incomplete_rows():
    aliases = aliases_from_records([
        {"alias": "NSS #2", "customer_name": "Northern Steel Supply"},
        {"alias": "", "customer_name": "Nobody"},
    ])

    assert aliases == {"NSS #2": "Northern Steel Supply"}
    assert aliases_from_records(None) == {}


def _write_inputs(data_dir):
    data_dir.mkdir()
    (data_dir / "customers.csv").write_text(
        "id,name,group,annual_spend\nc1,Acme Roofing,Dealer,2500000\n,Metro Construction,Commercial,\n"
    )
    (data_dir / "categories.csv").write_text("id,name\nk1,FC36\n")
    (data_dir / "sales.csv").write_text(
        "id,customer_name,category,amount,cogs\nt1,Acme Roofing,FC36,1000,800\n"
    )


@pytest.fixture
def data_settings(tmp_path, monkeypatch):
    monkeypatch.delenv("PRICING_DATA_DIR", raising=False)
    return Settings.load(project_root=tmp_path)


def test_load_record_set(data_settings):
    _write_inputs(data_settings.data_dir)
    records = load_record_set(data_settings)

    assert records.report["status"] == "success"
    assert records.report["metrics"] == {"customers": 2, "categories": 1, "transactions": 1, "aliases": 0}
    assert records.customers[1].id == "cust_1"
    assert records.customers[1].annual_spend == 0.0
    assert records.strategy.list_multipliers == {"Default": 1.5, "Fasteners": 1.65}
    assert any("customer_aliases.csv" in w for w in records.report["warnings"])


def test_load_record_set_reads_saved_strategy(data_settings):
    _write_inputs(data_settings.data_dir)
    data_settings.strategy_json.write_text(json.dumps({"listMultipliers": {"Default": 1.7}}))

    records = load_record_set(data_settings)

    assert records.strategy.list_multipliers == {"Default": 1.7}
    assert "pricing_strategy.json" in records.report["input_files"]


def test_missing_inputs_fail(data_settings):
    records = load_record_set(data_settings)

    assert records.report["status"] == "failed"
    assert len(records.report["errors"]) == 3
    assert records.customers == []


def test_data_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("PRICING_DATA_DIR", str(tmp_path / "elsewhere"))
    settings = Settings.load(project_root=tmp_path)

    assert settings.sales_csv == tmp_path / "elsewhere" / "sales.csv"
