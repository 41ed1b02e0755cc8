"""
Error taxonomy for upstream data services.

The only distinction the retry policy cares about is "client error"
(HTTP 4xx, never retried) versus everything else (retried).
"""
from __future__ import annotations

from typing import Optional


class ApiServiceError(Exception):
    """Failure while talking to an upstream API or decoding its envelope."""

    user_message = "Không thể tải dữ liệu. Vui lòng thử lại sau."

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.original_error = original_error
        super().__init__(message)

    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500

    def is_not_found(self) -> bool:
        return self.status_code == 404


class StockServiceError(ApiServiceError):
    user_message = "Không thể tải dữ liệu cổ phiếu. Vui lòng thử lại sau."


class FinancialDataError(ApiServiceError):
    user_message = "Không thể tải dữ liệu tài chính. Vui lòng thử lại sau."


class NewsServiceError(ApiServiceError):
    user_message = "Không thể tải tin tức. Vui lòng thử lại sau."


class ShareholdersServiceError(ApiServiceError):
    user_message = "Không thể tải dữ liệu cổ đông. Vui lòng thử lại sau."


class SheetsDataError(ApiServiceError):
    user_message = "Không thể tải dữ liệu từ Google Sheets. Vui lòng thử lại sau."


class WordPressServiceError(ApiServiceError):
    user_message = "Không thể tải bài viết. Vui lòng thử lại sau."


class MarketDataError(ApiServiceError):
    user_message = "Không thể tải dữ liệu thị trường. Vui lòng thử lại sau."


__all__ = [
    "ApiServiceError",
    "StockServiceError",
    "FinancialDataError",
    "NewsServiceError",
    "ShareholdersServiceError",
    "SheetsDataError",
    "WordPressServiceError",
    "MarketDataError",
]
