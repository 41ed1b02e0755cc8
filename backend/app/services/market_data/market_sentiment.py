"""
Market sentiment dashboard and weekly forecast.

Neither has an upstream source yet: the sentiment payload is generated and
the forecast is a fixed editorial snapshot. Both are flagged ``is_demo``.
"""
from __future__ import annotations

import math
import random
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

SENTIMENT_ZONES = [
    {"label": "Quá bi quan", "min": 0, "max": 30, "color": "#ef4444", "dark_color": "#dc2626"},
    {"label": "Bi quan", "min": 30, "max": 45, "color": "#f97316", "dark_color": "#ea580c"},
    {"label": "Trung lập", "min": 45, "max": 55, "color": "#eab308", "dark_color": "#ca8a04"},
    {"label": "Lạc quan", "min": 55, "max": 70, "color": "#84cc16", "dark_color": "#65a30d"},
    {"label": "Quá lạc quan", "min": 70, "max": 100, "color": "#22c55e", "dark_color": "#16a34a"},
]
UNKNOWN_SENTIMENT = "Không xác định"
NEUTRAL_GRAY = "#6b7280"

SECTORS = [
    "Tiêu dùng không thiết yếu",
    "Nguyên vật liệu",
    "Năng lượng",
    "Tiêu dùng thiết yếu",
    "Tài chính",
    "Bất động sản",
    "Dịch vụ truyền thông",
    "Công nghiệp",
    "Chăm sóc sức khỏe",
    "Tiện ích",
    "Công nghệ thông tin",
]

PRICE_CHANGE_BINS = [
    ("≤ -7%", -100, -7),
    ("-7% → -5%", -7, -5),
    ("-5% → -3%", -5, -3),
    ("-3% → -1%", -3, -1),
    ("-1% → 0%", -1, 0),
    ("0%", 0, 0),
    ("0% → 1%", 0, 1),
    ("1% → 3%", 1, 3),
    ("3% → 5%", 3, 5),
    ("5% → 7%", 5, 7),
    ("≥ 7%", 7, 100),
]

FORECAST_SNAPSHOT = {
    "trend": "up",
    "risk_ratio": 33,
    "macro": "neutral",
    "momentum": "positive",
    "technical": "positive",
    "last_updated": "11/07/2025",
    "confidence": 90,
    "description": "Tuần này sẽ có nhiều biến động. Vui lòng cân nhắc kỹ lưỡng trước khi đầu tư.",
}


def _find_zone(percent: float) -> Optional[Dict[str, Any]]:
    for zone in SENTIMENT_ZONES:
        if zone["min"] <= percent < zone["max"]:
            return zone
    return None


def get_sentiment_label(percent: float) -> str:
    zone = _find_zone(percent)
    return zone["label"] if zone else UNKNOWN_SENTIMENT


def get_sentiment_color(percent: float, dark: bool = False) -> str:
    zone = _find_zone(percent)
    if zone is None:
        return NEUTRAL_GRAY
    return zone["dark_color"] if dark else zone["color"]


def _sector_pct(rng: random.Random) -> float:
    roll = rng.random()
    if roll < 0.1:
        pct = 5 + rng.random() * 2 if rng.random() > 0.5 else -7 + rng.random() * 2
    elif roll < 0.3:
        pct = 3 + rng.random() * 2 if rng.random() > 0.5 else -5 + rng.random() * 2
    else:
        pct = rng.random() * 6 - 3
    return round(pct, 2)


def generate_market_sentiment(rng: Optional[random.Random] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Gauge, money flow, sector breadth, price change distribution and a 30-day history."""
    rng = rng or random.Random()
    now = now or datetime.now()

    percent = round(35 + rng.random() * 40 + (rng.random() * 10 if rng.random() > 0.5 else 0))

    total_flow = 15 + rng.random() * 10
    up_share = 0.3 + rng.random() * 0.4
    down_share = 0.3 + rng.random() * 0.3
    money_flow = [
        {"label": "Tăng", "value": round(total_flow * up_share, 2), "color": "#22c55e"},
        {"label": "Giảm", "value": round(total_flow * down_share, 2), "color": "#ef4444"},
        {"label": "Không đổi", "value": round(total_flow * (1 - up_share - down_share), 2), "color": "#eab308"},
    ]

    breadth = sorted(
        (
            {"sector": sector, "pct": _sector_pct(rng), "count": int(10 + rng.random() * 40)}
            for sector in SECTORS
        ),
        key=lambda item: item["pct"],
        reverse=True,
    )

    center = len(PRICE_CHANGE_BINS) // 2
    distribution = [
        {
            "range": label,
            "range_start": start,
            "range_end": end,
            "count": int(100 * math.exp(-abs(index - center) * 0.3) + rng.random() * 20),
        }
        for index, (label, start, end) in enumerate(PRICE_CHANGE_BINS)
    ]

    history = []
    value = 50.0
    for offset in range(29, -1, -1):
        # random walk pulled back towards 55
        value += (rng.random() - 0.5) * 8 + (55 - value) * 0.1
        value = max(20.0, min(80.0, value))
        history.append({
            "date": (now - timedelta(days=offset)).date().isoformat(),
            "value": round(value),
            "volume": int(1000 + rng.random() * 2000),
        })
    history[-1]["value"] = percent

    timestamp = now.isoformat()
    return {
        "gauge": {
            "percent": percent,
            "label": get_sentiment_label(percent),
            "color": get_sentiment_color(percent),
            "updated_at": timestamp,
        },
        "money_flow": money_flow,
        "breadth": breadth,
        "distribution": distribution,
        "history": history,
        "timestamp": timestamp,
        "is_demo": True,
    }


def get_market_forecast() -> Dict[str, Any]:
    return {**FORECAST_SNAPSHOT, "is_demo": True}


__all__ = [
    "SENTIMENT_ZONES",
    "SECTORS",
    "PRICE_CHANGE_BINS",
    "get_sentiment_label",
    "get_sentiment_color",
    "generate_market_sentiment",
    "get_market_forecast",
]
