import random
from datetime import datetime

import pytest

from app.services.market_data.market_sentiment import (
    PRICE_CHANGE_BINS,
    SECTORS,
    generate_market_sentiment,
    get_market_forecast,
    get_sentiment_color,
    get_sentiment_label,
)


@pytest.mark.parametrize("percent, label", [
    (0, "Quá bi quan"),
    (29.9, "Quá bi quan"),
    (30, "Bi quan"),
    (50, "Trung lập"),
    (55, "Lạc quan"),
    (70, "Quá lạc quan"),
    (100, "Không xác định"),
    (-1, "Không xác định"),
])
def test_sentiment_label(percent, label):
    assert get_sentiment_label(percent) == label


def test_sentiment_color():
    assert get_sentiment_color(10) == "#ef4444"
    assert get_sentiment_color(10, dark=True) == "#dc2626"
    assert get_sentiment_color(150) == "#6b7280"


def test_generated_sentiment_is_consistent():
    now = datetime(2025, 7, 11, 15, 0)
    data = generate_market_sentiment(rng=random.Random(42), now=now)

    gauge = data["gauge"]
    assert 35 <= gauge["percent"] <= 85
    assert gauge["label"] == get_sentiment_label(gauge["percent"])
    assert data["is_demo"] is True

    assert len(data["history"]) == 30
    assert data["history"][-1]["value"] == gauge["percent"]
    assert data["history"][-1]["date"] == "2025-07-11"
    assert data["history"][0]["date"] == "2025-06-12"

    pcts = [item["pct"] for item in data["breadth"]]
    assert pcts == sorted(pcts, reverse=True)
    assert {item["sector"] for item in data["breadth"]} == set(SECTORS)

    assert [d["range"] for d in data["distribution"]] == [label for label, _, _ in PRICE_CHANGE_BINS]
    assert [m["label"] for m in data["money_flow"]] == ["Tăng", "Giảm", "Không đổi"]


def test_forecast_is_flagged_as_demo():
    forecast = get_market_forecast()
    assert forecast["trend"] == "up"
    assert forecast["confidence"] == 90
    assert forecast["is_demo"] is True
