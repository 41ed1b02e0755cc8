from app.utils.stock_filters import Pagination, StockFilters, select_tab_data

COMPANIES = [
    {"ticker": "FPT", "nameVi": "Công ty Cổ phần FPT", "nameEn": "FPT Corporation",
     "stockExchange": "HOSE", "bcEconomicSectorSlug": "cong-nghe", "bcEconomicSectorName": "Công nghệ"},
    {"ticker": "VCB", "nameVi": "Ngân hàng Vietcombank", "nameEn": "Vietcombank",
     "stockExchange": "HOSE", "bcEconomicSectorSlug": "ngan-hang", "bcEconomicSectorName": "Ngân hàng"},
    {"ticker": "SHS", "nameVi": "Chứng khoán Sài Gòn Hà Nội", "nameEn": None,
     "stockExchange": "HNX", "bcEconomicSectorSlug": "tai-chinh", "bcEconomicSectorName": "Tài chính"},
    {"ticker": "XYZ", "nameVi": "Không ngành", "stockExchange": "", "bcEconomicSectorSlug": None},
]


def test_search_matches_ticker_and_names_case_insensitively():
    assert [c["ticker"] for c in StockFilters(search_term="vietcom").apply(COMPANIES)] == ["VCB"]
    assert [c["ticker"] for c in StockFilters(search_term="fpt").apply(COMPANIES)] == ["FPT"]
    assert len(StockFilters().apply(COMPANIES)) == 4


def test_exchange_and_sector_filters_combine():
    filters = StockFilters(selected_exchange="HOSE", selected_sector="ngan-hang")
    assert [c["ticker"] for c in filters.apply(COMPANIES)] == ["VCB"]
    filters.reset()
    assert filters.selected_exchange == "all"
    assert len(filters.apply(COMPANIES)) == 4


def test_option_lists_skip_empty_values():
    assert StockFilters.exchanges(COMPANIES) == ["HOSE", "HNX"]
    assert [s["slug"] for s in StockFilters.sectors(COMPANIES)] == ["cong-nghe", "ngan-hang", "tai-chinh"]


def test_pagination_bounds():
    pagination = Pagination(total_items=45, items_per_page=20)
    assert pagination.total_pages == 3
    assert (pagination.start_index, pagination.end_index) == (0, 20)

    pagination.go_to_page(99)
    assert pagination.current_page == 3
    assert pagination.is_last_page
    pagination.next_page()
    assert pagination.current_page == 3

    pagination.go_to_page(-2)
    assert pagination.is_first_page
    pagination.previous_page()
    assert pagination.current_page == 1

    pagination.last_page()
    assert pagination.slice(list(range(45))) == list(range(40, 45))
    pagination.set_total_items(10)
    assert pagination.current_page == 1
    assert pagination.total_pages == 1


def test_pagination_with_no_items_stays_on_first_page():
    pagination = Pagination(total_items=0)
    pagination.go_to_page(3)
    assert pagination.current_page == 1
    assert not pagination.has_next_page


def test_select_tab_data():
    top_lists = {"gainers": [{"ticker": "FPT"}], "losers": [], "volume": [{"ticker": "VCB"}]}
    rows = [{"ticker": str(i)} for i in range(30)]
    assert select_tab_data("gainers", rows, top_lists) == [{"ticker": "FPT"}]
    assert select_tab_data("volume", rows, top_lists) == [{"ticker": "VCB"}]
    assert select_tab_data("losers", rows, None) == []
    assert select_tab_data("all", rows, top_lists, page=2, per_page=20) == rows[20:]
