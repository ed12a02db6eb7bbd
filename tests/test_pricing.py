import re
from datetime import timedelta
from decimal import Decimal

import pytest

from models import utcnow
from pricing import estimate_price, generate_verification_code, payment_message, performance_rating, to_money
from schemas import capacity_figures, days_since


@pytest.mark.parametrize(
    "weight, price, expected",
    [
        ("1.25", "12.50", "15.63"),
        ("3.33", "60.15", "200.30"),
        ("0.1", "0.05", "0.01"),
        ("10", "50.00", "500.00"),
        ("1.005", "50.00", "50.50"),
        ("2.345", "50.00", "117.50"),
    ],
)
def test_estimate_price_rounds_half_up(weight, price, expected):
    assert estimate_price(Decimal(weight), Decimal(price)) == Decimal(expected)


def test_estimate_price_without_category_price():
    assert estimate_price(Decimal("4"), None) == Decimal("0.00")


def test_to_money():
    assert str(to_money(Decimal("2.005"))) == "2.01"
    assert str(to_money(Decimal("7"))) == "7.00"


def test_verification_code_shape():
    codes = {generate_verification_code() for _ in range(20)}

    assert len(codes) == 20
    assert all(re.fullmatch(r"[0-9A-F]{10}", code) for code in codes)


def test_payment_message():
    assert payment_message(Decimal("225.5"), "ABCDEF1234") == (
        "Collection recorded. Payment of Rs.225.50 pending. Code: ABCDEF1234"
    )
    assert payment_message(None, None) == "Collection recorded successfully"


@pytest.mark.parametrize(
    "collections, complaints, rating",
    [
        (0, 0, "No Activity"),
        (0, 3, "No Activity"),
        (20, 1, "Excellent"),
        (20, 3, "Good"),
        (20, 6, "Average"),
        (20, 7, "Poor"),
    ],
)
def test_performance_rating(collections, complaints, rating):
    assert performance_rating(collections, complaints) == rating


def test_capacity_figures():
    assert capacity_figures(1000.0, 250.0) == (25.0, 750.0)
    assert capacity_figures(3.0, 1.0) == (33.33, 2.0)
    assert capacity_figures(0.0, 0.0) == (0.0, 0.0)


def test_days_since():
    assert days_since(utcnow() - timedelta(days=3, hours=1)) == 3
    assert days_since(utcnow() + timedelta(days=1)) == 0
