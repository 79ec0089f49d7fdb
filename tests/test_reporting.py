from datetime import date
from decimal import Decimal

import pytest

from devicebook.crud.devices import create_device
from devicebook.services.reporting import build_monthly_report, month_bounds, summarize_sales


def _device(db, device_id, **overrides):
    data = {
        "id": device_id,
        "model": "Galaxy S21",
        "storage": "128GB",
        "color": "Grau",
        "purchaseDate": "2024-02-01",
        "purchasePrice": "1000",
    }
    data.update(overrides)
    return create_device(db, "local", data)


def test_month_bounds_cover_whole_month():
    assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds("2023-12") == (date(2023, 12, 1), date(2023, 12, 31))


@pytest.mark.parametrize("month", ["2024-13", "2024-00", "2024/03", "März", ""])
def test_month_bounds_rejects_invalid_months(month):
    with pytest.raises(ValueError):
        month_bounds(month)


def test_summarize_sales_adds_up_financials(db_session):
    first = _device(db_session, "D-1", status="SOLD", salePrice="1190", saleDate="2024-03-03", repairCost="10")
    second = _device(
        db_session,
        "D-2",
        status="SOLD",
        salePrice="500",
        saleDate="2024-03-10",
        purchasePrice="400",
        isDiffTax=False,
        shippingSell="5",
    )

    totals = summarize_sales([first, second])

    assert totals["total_revenue"] == Decimal("1690.00")
    assert totals["total_purchase_cost"] == Decimal("1400.00")
    assert totals["total_repair_cost"] == Decimal("10.00")
    assert totals["total_shipping_cost"] == Decimal("5.00")
    assert totals["total_taxable_margin"] == Decimal("290.00")
    assert totals["total_actual_profit"] == Decimal("275.00")
    assert totals["total_gross_profit"] == totals["total_actual_profit"]
    # 190 * 19/119 plus 500 * 19/119
    assert totals["total_vat"] == Decimal("110.17")
    assert totals["total_net_profit"] == Decimal("164.83")


def test_monthly_report_only_counts_sales_in_month(db_session):
    _device(db_session, "D-1", status="SOLD", salePrice="1190", saleDate="2024-03-31")
    _device(db_session, "D-2", status="SOLD", salePrice="900", saleDate="2024-04-01")
    _device(db_session, "D-3")
    _device(db_session, "D-4", status="REPAIR")

    report = build_monthly_report(db_session, "local", "2024-03")

    assert report["month"] == "2024-03"
    assert report["period_end"] == date(2024, 3, 31)
    assert [device.id for device in report["devices"]] == ["D-1"]
    kpis = report["kpis"]
    assert kpis["sold_count"] == 1
    assert kpis["stock_count"] == 1
    assert kpis["repair_count"] == 1
    assert kpis["total_revenue"] == Decimal("1190.00")
    assert kpis["total_vat"] == Decimal("30.34")


def test_monthly_report_for_empty_month(db_session):
    report = build_monthly_report(db_session, "local", "2024-05")

    assert report["devices"] == []
    assert report["kpis"]["sold_count"] == 0
    assert report["kpis"]["total_net_profit"] == Decimal("0.00")
