import pytest

from app.services.market_data.errors import FinancialDataError
from app.services.market_data.financial import (
    FinancialService,
    process_financial_section,
    validate_ticker,
)

METRICS = [
    {"name": "revenue", "field": "isa1", "level": 1, "parent": None, "titleVi": "Doanh thu", "titleEn": "Revenue"},
    {"name": "net_revenue", "field": "isa3", "level": 2, "parent": "revenue", "titleVi": "Doanh thu thuần"},
    {"name": "header_only", "field": None, "level": 0, "parent": None},
    {"name": "always_zero", "field": "isa9", "level": 1, "parent": None},
    {"name": "profit", "field": "isa20", "level": 1, "parent": None},
]


def annual(year, **values):
    return {"yearReport": year, "lengthReport": 5, **values}


def quarter(year, q, **values):
    return {"yearReport": year, "lengthReport": q, **values}


STATEMENT = {
    "years": [
        annual(2018, isa1=50, isa3=40, isa9=0, isa20=5),
        annual(2019, isa1=60, isa3=50, isa9=0, isa20=6),
        annual(2020, isa1=70, isa3=60, isa9=0, isa20=7),
        annual(2021, isa1=80, isa3=70, isa9=0, isa20=0),
        annual(2022, isa1=90, isa3="n/a", isa9=0, isa20=8),
        annual(2023, isa1=120, isa3=100, isa9=0, isa20=10),
        {"yearReport": 2023, "lengthReport": 4, "isa1": 1},
    ],
    "quarters": [quarter(2022, q, isa1=10 * q, isa20=q) for q in range(1, 5)]
    + [quarter(2023, q, isa1=100 + q, isa20=q) for q in range(1, 5)]
    + [quarter(2024, 1, isa1=200, isa20=0), quarter(2024, 5, isa1=999)],
}


def test_annual_keeps_newest_five_years_oldest_first():
    section = process_financial_section("INCOME_STATEMENT", "KQKD", METRICS, STATEMENT, "annual")
    assert section.periods == ["2019", "2020", "2021", "2022", "2023"]
    assert section.available_years == [2023, 2022, 2021, 2020, 2019, 2018]
    assert section.available_quarters == []

    fields = [item.field for item in section.items]
    assert fields == ["isa1", "isa3", "isa20"]

    revenue = section.items[0]
    assert revenue.values["2023"] == 120
    assert revenue.latest_value == 120
    assert revenue.previous_value == 90
    assert revenue.change == 30
    assert revenue.change_percent == pytest.approx(100 / 3)
    assert revenue.has_children is True
    assert revenue.title_vi == "Doanh thu"

    net_revenue = section.items[1]
    assert net_revenue.values["2022"] is None
    assert net_revenue.previous_value is None
    assert net_revenue.change is None
    assert net_revenue.has_children is False


def test_quarterly_keeps_newest_eight_quarters():
    section = process_financial_section("INCOME_STATEMENT", "KQKD", METRICS, STATEMENT, "quarterly")
    assert section.periods == ["Q2/2022", "Q3/2022", "Q4/2022", "Q1/2023", "Q2/2023", "Q3/2023", "Q4/2023", "Q1/2024"]
    assert section.available_quarters[0] == "Q1/2024"
    assert len(section.available_quarters) == 9

    profit = next(item for item in section.items if item.field == "isa20")
    # a zero latest value counts as missing, so there is no change
    assert profit.latest_value is None
    assert profit.change is None


def test_previous_zero_means_no_change():
    statement = {"years": [annual(2022, isa1=0), annual(2023, isa1=10)]}
    section = process_financial_section("INCOME_STATEMENT", "KQKD", METRICS[:1], statement)
    item = section.items[0]
    assert item.latest_value == 10
    assert item.previous_value is None
    assert item.change_percent is None


def test_empty_statement_gives_empty_section():
    section = process_financial_section("NOTE", "TM", METRICS, {})
    assert section.periods == []
    assert section.items == []


def test_records_without_report_year_are_ignored():
    statement = {
        "years": [annual(2022, isa1=10), {"yearReport": None, "lengthReport": 5, "isa1": 7}, annual(2023, isa1=20)],
        "quarters": [quarter(2023, 1, isa1=3), {"yearReport": None, "lengthReport": 2, "isa1": 7}, {"lengthReport": 3}],
    }

    yearly = process_financial_section("INCOME_STATEMENT", "KQKD", METRICS[:1], statement, "annual")
    assert yearly.periods == ["2022", "2023"]
    assert yearly.available_years == [2023, 2022]
    assert yearly.items[0].values == {"2022": 10, "2023": 20}

    quarterly = process_financial_section("INCOME_STATEMENT", "KQKD", METRICS[:1], statement, "quarterly")
    assert quarterly.periods == ["Q1/2023"]
    assert quarterly.available_quarters == ["Q1/2023"]


@pytest.mark.parametrize("ticker, valid", [
    ("FPT", True),
    ("VNM ", True),
    ("HPGX", True),
    ("fpt", False),
    ("AB", False),
    ("ABCDE", False),
    ("", False),
    (None, False),
])
def test_validate_ticker(ticker, valid):
    assert validate_ticker(ticker) is valid


@pytest.mark.asyncio
async def test_statement_rejects_unknown_section(upstream):
    with pytest.raises(FinancialDataError) as exc:
        await FinancialService().get_financial_statement("FPT", "EQUITY")
    assert exc.value.status_code == 400
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_get_all_financial_data_reports_failed_sections(upstream):
    metrics = {"INCOME_STATEMENT": METRICS, "BALANCE_SHEET": [], "CASH_FLOW": [], "NOTE": []}
    upstream.add("/financial-statement/metrics", json={"successful": True, "data": metrics})
    upstream.add("section=INCOME_STATEMENT", json={"successful": True, "data": STATEMENT})
    upstream.add("section=BALANCE_SHEET", json={"successful": False, "msg": "Không có dữ liệu", "status": 404})
    upstream.add("section=CASH_FLOW", json={"successful": True, "data": {"years": []}})
    upstream.add("section=NOTE", json={"successful": True, "data": {"years": []}})

    data = await FinancialService().get_all_financial_data("fpt")

    assert data["ticker"] == "FPT"
    assert set(data["sections"]) == {"incomeStatement", "cashFlow", "notes"}
    assert data["errors"] == {"BALANCE_SHEET": "Không có dữ liệu"}
    assert data["sections"]["incomeStatement"].periods[-1] == "2023"
    request = upstream.calls_to("section=INCOME_STATEMENT")[0]
    assert request.headers["Referer"] == "https://trading.vietcap.com.vn"


@pytest.mark.asyncio
async def test_get_all_financial_data_requires_metrics(upstream):
    upstream.add("/financial-statement/metrics", json={"successful": False, "msg": "Ticker not found", "status": 404})
    upstream.add("/financial-statement", json={"successful": True, "data": {}})
    with pytest.raises(FinancialDataError, match="Ticker not found"):
        await FinancialService().get_all_financial_data("ZZZ")


@pytest.mark.asyncio
async def test_available_years_is_empty_on_failure(upstream):
    upstream.add("/financial-statement", json={}, status=404)
    assert await FinancialService().get_available_years("FPT") == []
    assert await FinancialService().get_last_update_date("FPT") is None
