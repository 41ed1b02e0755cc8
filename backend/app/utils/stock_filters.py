"""
Company list filtering, pagination and tab selection for the stock screener.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

ALL = "all"
STOCK_TABS = ("all", "gainers", "losers", "volume")


@dataclass
class StockFilters:
    search_term: str = ""
    selected_exchange: str = ALL
    selected_sector: str = ALL

    def apply(self, companies: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        filtered = companies
        if self.search_term:
            needle = self.search_term.lower()
            filtered = [
                c for c in filtered
                if any(needle in (c.get(key) or "").lower() for key in ("ticker", "nameVi", "nameEn"))
            ]
        if self.selected_exchange != ALL:
            filtered = [c for c in filtered if c.get("stockExchange") == self.selected_exchange]
        if self.selected_sector != ALL:
            filtered = [c for c in filtered if c.get("bcEconomicSectorSlug") == self.selected_sector]
        return filtered

    def reset(self) -> None:
        self.search_term = ""
        self.selected_exchange = ALL
        self.selected_sector = ALL

    @staticmethod
    def exchanges(companies: List[Dict[str, Any]]) -> List[str]:
        """Distinct exchanges in first-seen order."""
        return list(dict.fromkeys(c.get("stockExchange") for c in companies if c.get("stockExchange")))

    @staticmethod
    def sectors(companies: List[Dict[str, Any]]) -> List[Dict[str, str]]:
        """Distinct ``{slug, name}`` sectors in first-seen order."""
        seen: Dict[str, Dict[str, str]] = {}
        for c in companies:
            slug, name = c.get("bcEconomicSectorSlug"), c.get("bcEconomicSectorName")
            if slug and name and slug not in seen:
                seen[slug] = {"slug": slug, "name": name}
        return list(seen.values())


class Pagination:
    def __init__(self, total_items: int, items_per_page: int = 20):
        self.total_items = total_items
        self.items_per_page = items_per_page
        self.current_page = 1

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.items_per_page)

    @property
    def start_index(self) -> int:
        return (self.current_page - 1) * self.items_per_page

    @property
    def end_index(self) -> int:
        return self.start_index + self.items_per_page

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.current_page > 1

    @property
    def is_first_page(self) -> bool:
        return self.current_page == 1

    @property
    def is_last_page(self) -> bool:
        return self.current_page == self.total_pages

    def set_total_items(self, total_items: int) -> None:
        """A new result set always starts on page 1."""
        self.total_items = total_items
        self.current_page = 1

    def go_to_page(self, page: int) -> None:
        self.current_page = max(1, min(page, self.total_pages))

    def next_page(self) -> None:
        if self.has_next_page:
            self.current_page += 1

    def previous_page(self) -> None:
        if self.has_previous_page:
            self.current_page -= 1

    def first_page(self) -> None:
        self.current_page = 1

    def last_page(self) -> None:
        self.current_page = self.total_pages

    def slice(self, items: List[Any]) -> List[Any]:
        return items[self.start_index:self.end_index]


def select_tab_data(
    tab: str,
    filtered: List[Dict[str, Any]],
    top_lists: Optional[Dict[str, List[Dict[str, Any]]]],
    page: int = 1,
    per_page: int = 20,
) -> List[Dict[str, Any]]:
    """Rows shown for a screener tab; ``all`` pages through the filtered list."""
    if tab in ("gainers", "losers", "volume"):
        return (top_lists or {}).get(tab) or []
    start = (page - 1) * per_page
    return filtered[start:start + per_page]


__all__ = ["StockFilters", "Pagination", "select_tab_data", "STOCK_TABS"]
