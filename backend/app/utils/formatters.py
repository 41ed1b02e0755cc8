"""
Formatting helpers for numbers, prices, dates and HTML content.

All helpers are total: ``None``, NaN, infinities and unparsable strings map
to a documented fallback value instead of raising. Vietnamese locale rules
apply where a locale is involved: ``.`` groups thousands and ``,`` separates
decimals (``1.234.567``, ``12,5``).
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Dict, Optional

NON_NUMERIC = re.compile(r"[^\d.-]")
HTML_TAG = re.compile(r"<[^>]*>")
WHITESPACE = re.compile(r"\s+")

NO_INFORMATION = "Không có thông tin"

COLOR_POSITIVE = "text-green-600 dark:text-green-400"
COLOR_NEGATIVE = "text-red-600 dark:text-red-400"
COLOR_UNCHANGED = "text-yellow-600 dark:text-yellow-400"
COLOR_NEUTRAL = "text-gray-600 dark:text-gray-400"
COLOR_MUTED = "text-muted-foreground"

COUNTRY_NAMES = {
    "Vietnam": "Việt Nam",
    "United States": "Hoa Kỳ",
    "Singapore": "Singapore",
    "South Korea": "Hàn Quốc",
    "Japan": "Nhật Bản",
    "Hong Kong": "Hồng Kông",
    "Taiwan": "Đài Loan",
    "United Kingdom": "Anh",
    "Switzerland": "Thụy Sĩ",
    "Luxembourg": "Luxembourg",
    "Thailand": "Thái Lan",
    "Finland": "Phần Lan",
    "Sweden": "Thụy Điển",
}

_SUFFIXES = ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K"))
_VI_UNITS = ((1e12, " nghìn tỷ"), (1e9, " tỷ"), (1e6, " triệu"), (1e3, " nghìn"))


def parse_leading_float(text: str) -> Optional[float]:
    """Parse the leading float of ``text`` the lenient way (``'12.5abc'`` -> 12.5)."""
    match = re.match(r"\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?", text)
    if not match:
        return None
    return float(match.group(0))


def is_valid_number(value: Any) -> bool:
    """True only for real, finite numbers (strings and bools are not numbers)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _as_number(value: Any) -> Optional[float]:
    return float(value) if is_valid_number(value) else None


def to_number(value: Any, fallback: float = 0) -> float:
    """Convert to a number, stripping separators and symbols from strings."""
    if is_valid_number(value):
        return value
    if isinstance(value, str):
        parsed = parse_leading_float(NON_NUMERIC.sub("", value))
        if parsed is not None and math.isfinite(parsed):
            return parsed
    return fallback


def _quantize(value: float, decimals: int) -> Decimal:
    """Half-up rounding to ``decimals`` places, with enough precision for any finite float."""
    number = Decimal(repr(value))
    with localcontext() as ctx:
        ctx.prec = max(28, number.adjusted() + decimals + 2)
        return number.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def _fixed(value: float, decimals: int) -> str:
    """Fixed-point rendering with half-up rounding."""
    return str(_quantize(value, decimals))


def format_vi_number(value: float, max_decimals: int = 0, min_decimals: int = 0) -> str:
    """Render a number with Vietnamese separators."""
    if not math.isfinite(value):
        return "0"
    quantized = _quantize(value, max_decimals)
    text = f"{abs(quantized):,.{max_decimals}f}"
    if max_decimals > min_decimals and "." in text:
        integer, fraction = text.split(".")
        fraction = fraction.rstrip("0")
        if len(fraction) < min_decimals:
            fraction = fraction.ljust(min_decimals, "0")
        text = f"{integer}.{fraction}" if fraction else integer
    text = text.replace(",", "\0").replace(".", ",").replace("\0", ".")
    return f"-{text}" if quantized < 0 else text


def _with_suffix(abs_value: float) -> Optional[str]:
    for threshold, suffix in _SUFFIXES:
        if abs_value >= threshold:
            return f"{_fixed(abs_value / threshold, 1)}{suffix}"
    return None


def format_number(num: Any) -> str:
    """
    Compact number with K/M/B/T suffixes.

    >>> format_number(1000)
    '1.0K'
    >>> format_number(2500000000)
    '2.5B'
    >>> format_number(None)
    '0'
    """
    if num is None or num == "":
        return "0"
    if isinstance(num, str):
        value = parse_leading_float(NON_NUMERIC.sub("", num))
    else:
        value = _as_number(num)
    if value is None or not math.isfinite(value):
        return "0"

    abs_value = abs(value)
    formatted = _with_suffix(abs_value) or format_vi_number(abs_value, max_decimals=2)
    return f"-{formatted}" if value < 0 else formatted


def format_large_financial_number(value: Any) -> str:
    """Like ``format_number`` but values below one thousand are rounded to integers."""
    number = _as_number(value)
    if number is None:
        return "0"
    abs_value = abs(number)
    formatted = _with_suffix(abs_value) or _fixed(abs_value, 0)
    return f"-{formatted}" if number < 0 else formatted


def format_price(price: Any) -> str:
    number = _as_number(price)
    if number is None:
        return "0"
    return format_vi_number(number, max_decimals=0)


def format_percentage(value: Any, decimals: int = 2) -> str:
    number = _as_number(value)
    if number is None:
        return "0.00%"
    return f"{_fixed(number, decimals)}%"


def get_price_change_color(change: Any) -> str:
    number = _as_number(change)
    if number is None:
        return COLOR_MUTED
    if number > 0:
        return COLOR_POSITIVE
    if number < 0:
        return COLOR_NEGATIVE
    return COLOR_UNCHANGED


def get_price_change_badge_variant(change: Any) -> str:
    number = _as_number(change)
    if number is None:
        return "secondary"
    if number > 0:
        return "default"
    if number < 0:
        return "destructive"
    return "secondary"


def get_change_color(change_value: Any) -> str:
    number = _as_number(change_value) or 0
    if number > 0:
        return COLOR_POSITIVE
    if number < 0:
        return COLOR_NEGATIVE
    return COLOR_NEUTRAL


def get_financial_change_color(change: Any) -> str:
    number = _as_number(change)
    if number is None or number == 0:
        return COLOR_MUTED
    return COLOR_POSITIVE if number > 0 else COLOR_NEGATIVE


def get_financial_change_badge_variant(change: Any) -> str:
    return get_price_change_badge_variant(change)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings (``Z`` suffix allowed), datetimes and epoch seconds."""
    if isinstance(value, datetime):
        return value
    if is_valid_number(value):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_date(date_string: Any) -> str:
    """``dd/mm/yyyy``, or ``'N/A'`` for empty or unparsable input."""
    if not date_string:
        return "N/A"
    parsed = parse_datetime(date_string)
    if parsed is None:
        return "N/A"
    return parsed.strftime("%d/%m/%Y")


format_financial_date = format_date


def format_short_date(date_string: Any) -> str:
    """``d/m/yyyy`` without zero padding, as Vietnamese short dates are written."""
    parsed = parse_datetime(date_string)
    if parsed is None:
        return "N/A"
    return f"{parsed.day}/{parsed.month}/{parsed.year}"


def format_date_time(date_string: Any) -> str:
    """``HH:MM:SS d/m/yyyy``."""
    parsed = parse_datetime(date_string)
    if parsed is None:
        return "N/A"
    return f"{parsed.strftime('%H:%M:%S')} {parsed.day}/{parsed.month}/{parsed.year}"


def strip_html(html: Optional[str]) -> str:
    """
    Remove tags and trim.

    >>> strip_html('<p>Hello <strong>world</strong></p>')
    'Hello world'
    """
    if not html:
        return NO_INFORMATION
    return HTML_TAG.sub("", html).strip() or NO_INFORMATION


def strip_html_tags(html: Optional[str]) -> str:
    """Replace tags with spaces and collapse whitespace."""
    if not html:
        return ""
    return WHITESPACE.sub(" ", HTML_TAG.sub(" ", html)).strip()


def truncate_html_content(html: Optional[str], max_length: int) -> str:
    """Plain-text excerpt of at most ``max_length`` characters, cut on a word boundary when possible."""
    if not html:
        return ""
    text = strip_html_tags(html)
    if len(text) <= max_length:
        return html
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    cut_point = last_space if last_space > max_length * 0.8 else max_length
    return text[:cut_point] + "..."


def sanitize_html(html: Optional[str]) -> str:
    """Drop scripts, styles and event handlers and add display classes to common block tags."""
    if not html:
        return ""
    clean = html.replace("\r\n", "").replace("\t", "").strip()

    clean = re.sub(r"<ul>", '<ul class="list-disc list-inside space-y-1 ml-4 my-2">', clean, flags=re.I)
    clean = re.sub(r"<ol>", '<ol class="list-decimal list-inside space-y-1 ml-4 my-2">', clean, flags=re.I)
    clean = re.sub(r"<li>", '<li class="text-sm leading-relaxed">', clean, flags=re.I)
    clean = re.sub(r"<div[^>]*>", '<div class="mb-2">', clean, flags=re.I)
    clean = re.sub(r"<p[^>]*>", '<p class="mb-2 text-sm leading-relaxed">', clean, flags=re.I)

    clean = re.sub(r'on\w+="[^"]*"', "", clean, flags=re.I)
    clean = re.sub(r"javascript:", "", clean, flags=re.I)
    clean = re.sub(r"<script[^>]*>.*?</script>", "", clean, flags=re.I | re.S)
    clean = re.sub(r"<style[^>]*>.*?</style>", "", clean, flags=re.I | re.S)
    return clean


def safe_get(obj: Any, path: str, default: Any = None) -> Any:
    """
    Read a dotted path from nested dicts/lists.

    >>> safe_get({'a': {'b': 1}}, 'a.b', 0)
    1
    >>> safe_get({'a': None}, 'a.b', 'x')
    'x'
    """
    current = obj
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, (list, tuple)) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return default
        if current is None:
            return default
    return current


def format_currency(amount: Any) -> str:
    number = _as_number(amount)
    if number is None:
        return "0 VND"
    if number >= 1e12:
        return f"{_fixed(number / 1e12, 1)} nghìn tỷ VND"
    if number >= 1e9:
        return f"{_fixed(number / 1e9, 1)} tỷ VND"
    if number >= 1e6:
        return f"{_fixed(number / 1e6, 1)} triệu VND"
    return f"{format_vi_number(number)} ₫"


def format_country_name(country: str) -> str:
    return COUNTRY_NAMES.get(country, country)


def format_financial_amount(
    amount: Any,
    show_unit: bool = True,
    decimals: int = 1,
    compact: bool = True,
) -> str:
    """Amount in Vietnamese units (nghìn tỷ / tỷ / triệu / nghìn) or plain VND when not compact."""
    number = _as_number(amount)
    if number is None:
        return "0"

    abs_amount = abs(number)
    sign = "-" if number < 0 else ""

    if not compact:
        return f"{sign}{format_vi_number(abs_amount)}{' VND' if show_unit else ''}"

    for threshold, unit in _VI_UNITS:
        if abs_amount >= threshold:
            return f"{sign}{_fixed(abs_amount / threshold, decimals)}{unit if show_unit else ''}"
    return f"{sign}{format_vi_number(abs_amount)}"


def format_financial_ratio(
    ratio: Any,
    decimals: int = 2,
    as_percentage: bool = False,
    show_sign: bool = False,
) -> str:
    number = _as_number(ratio)
    if number is None:
        return "N/A"
    value = number * 100 if as_percentage else number
    sign = "+" if show_sign and number > 0 else ""
    return f"{sign}{_fixed(value, decimals)}{'%' if as_percentage else ''}"


def format_eps(eps: Any) -> str:
    number = _as_number(eps)
    if number is None:
        return "N/A"
    return f"{format_vi_number(number)} VND"


def format_yoy_change(current: Any, previous: Any) -> Dict[str, Any]:
    """Absolute and relative change between two periods."""
    if current is None or previous is None:
        return {"absolute": "N/A", "percentage": "N/A", "is_positive": None, "is_negative": None}

    change = current - previous
    percentage = (change / abs(previous)) * 100 if previous != 0 else None
    return {
        "absolute": format_financial_amount(change),
        "percentage": "N/A" if percentage is None else f"{'+' if percentage > 0 else ''}{_fixed(percentage, 1)}%",
        "is_positive": change > 0,
        "is_negative": change < 0,
    }


def format_financial_period(year: int, quarter: Optional[int] = None) -> str:
    if quarter and 1 <= quarter <= 4:
        return f"Q{quarter}/{year}"
    return str(year)


def format_financial_metric(value: Any, metric_type: str) -> str:
    """Dispatch on ``currency``, ``percentage``, ``ratio``, ``eps`` or ``count``."""
    number = _as_number(value)
    if number is None:
        return "N/A"
    if metric_type == "percentage":
        return format_financial_ratio(number, as_percentage=True)
    if metric_type == "ratio":
        return format_financial_ratio(number)
    if metric_type == "eps":
        return format_eps(number)
    if metric_type == "count":
        return format_vi_number(number, max_decimals=3)
    return format_financial_amount(number)
