from decimal import Decimal

import pytest

from errors import ValidationError
from models import ComplaintStatus
from validation import (
    require_cnic,
    require_phone,
    require_price,
    require_status,
    require_text,
    require_weight,
    sanitize,
    validate_cnic,
    validate_phone,
)


class TestCnic:
    @pytest.mark.parametrize("cnic", ["35202-1234567-1", "00000-0000000-0"])
    def test_valid(self, cnic):
        assert validate_cnic(cnic)
        assert require_cnic(cnic) == cnic

    @pytest.mark.parametrize("cnic", ["3520212345671", "35202-1234567", "35202-1234567-12", " 35202-1234567-1", "", None])
    def test_invalid(self, cnic):
        assert not validate_cnic(cnic)

    def test_missing_and_malformed_messages(self):
        with pytest.raises(ValidationError, match="CNIC is required"):
            require_cnic("   ")
        with pytest.raises(ValidationError, match="Invalid CNIC format"):
            require_cnic("12345")


class TestPhone:
    def test_separators_are_stripped(self):
        assert validate_phone("0300-123 4567")
        assert require_phone("0300-1234567") == "03001234567"

    def test_phone_is_optional(self):
        assert require_phone(None) is None
        assert require_phone("  ") is None

    @pytest.mark.parametrize("phone", ["04001234567", "0300123456", "+923001234567"])
    def test_invalid(self, phone):
        with pytest.raises(ValidationError):
            require_phone(phone)


def test_sanitize_collapses_whitespace():
    assert sanitize("  House 5,\t Street  9\n") == "House 5, Street 9"
    assert sanitize("   ") == ""
    assert sanitize(None) == ""


def test_require_text():
    assert require_text(" Glass ", "Category name") == "Glass"
    with pytest.raises(ValidationError, match="Category name is required"):
        require_text("  ", "Category name")


class TestWeight:
    @pytest.mark.parametrize("weight", ["0.1", "1", "10000"])
    def test_bounds_inclusive(self, weight):
        assert require_weight(Decimal(weight)) == Decimal(weight)

    def test_too_light(self):
        with pytest.raises(ValidationError, match="at least 0.1 kg"):
            require_weight(Decimal("0.09"))

    def test_too_heavy(self):
        with pytest.raises(ValidationError, match="cannot exceed 10000 kg"):
            require_weight(Decimal("10000.01"))


def test_require_price():
    assert require_price(Decimal("0")) == Decimal("0")
    with pytest.raises(ValidationError):
        require_price(Decimal("-0.01"))


def test_require_status():
    assert require_status("Resolved", ComplaintStatus.OPERATOR_SETTABLE) == "Resolved"
    with pytest.raises(ValidationError, match="Status must be one of"):
        require_status("Closed", ComplaintStatus.OPERATOR_SETTABLE)


def test_require_weight_returns_stored_scale():
    assert str(require_weight(Decimal("2.345"))) == "2.35"
    # 0.095 rounds up into range
    assert str(require_weight(Decimal("0.095"))) == "0.10"
