"""Tests for quote validation and totals."""

from decimal import Decimal

import pytest

from tailorconnect.domain.quotes.schemas import QuoteSubmission
from tailorconnect.domain.quotes.service import (
    build_quote,
    compute_total,
    quote_to_response,
    respond,
    validate_submission,
)
from tailorconnect.errors import InvalidTransitionError, ValidationError
from tailorconnect.statuses import QuoteStatus

from tests.conftest import quote_submission


class TestTotals:
    def test_items_plus_labor(self):
        assert compute_total(quote_submission()) == Decimal("25.00")

    def test_matching_total_accepted(self):
        assert validate_submission(quote_submission(totalAmount=25)) == Decimal("25.00")

    def test_total_within_a_cent_accepted(self):
        assert validate_submission(quote_submission(totalAmount=25.01)) == Decimal("25.00")

    def test_mismatched_total_rejected(self):
        with pytest.raises(ValidationError, match="does not match"):
            validate_submission(quote_submission(totalAmount=30))

    def test_total_without_breakdown_kept_as_given(self):
        data = QuoteSubmission(totalAmount=100, estimatedDays={"design": 1, "sew": 2, "deliver": 1})
        assert validate_submission(data) == Decimal("100.00")
        assert build_quote(3, data).total_amount == 100.0

    def test_total_checked_against_labor_only(self):
        with pytest.raises(ValidationError, match="does not match"):
            validate_submission(QuoteSubmission(laborCost=40, totalAmount=100))

    def test_negative_bare_total_rejected(self):
        with pytest.raises(ValidationError):
            validate_submission(QuoteSubmission(totalAmount=-5))

    def test_floating_point_prices(self):
        data = quote_submission(
            items=[{"description": "Buttons", "quantity": 3, "unitPrice": 0.1}],
            laborCost=0.2,
        )
        assert compute_total(data) == Decimal("0.50")


class TestValidation:
    def test_negative_labor_rejected(self):
        with pytest.raises(ValidationError, match="Labor"):
            validate_submission(quote_submission(laborCost=-1))

    def test_negative_material_rejected(self):
        with pytest.raises(ValidationError, match="Material"):
            validate_submission(quote_submission(materialCost=-0.5))

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError, match="quantity"):
            validate_submission(
                quote_submission(items=[{"description": "Lining", "quantity": 0, "unitPrice": 4}])
            )

    def test_zero_day_estimate_rejected(self):
        with pytest.raises(ValidationError, match="sew"):
            validate_submission(quote_submission(estimatedDays={"design": 1, "sew": 0, "deliver": 1}))

    def test_bad_currency_rejected(self):
        with pytest.raises(ValidationError, match="Currency"):
            validate_submission(quote_submission(currency="EURO"))


class TestQuoteRecord:
    def test_build_quote_stores_estimates_and_items(self):
        quote = build_quote(7, quote_submission(notes="<i>rush</i>", currency="eur"))
        assert quote.booking_id == 7
        assert quote.total_amount == 25.0
        assert quote.currency == "EUR"
        assert (quote.design_days, quote.sew_days, quote.deliver_days) == (2, 5, 1)
        assert quote.notes == "&lt;i&gt;rush&lt;/i&gt;"
        assert len(quote.items) == 1
        assert quote.status == QuoteStatus.SUBMITTED.value

    def test_quote_can_only_be_answered_once(self):
        quote = build_quote(1, quote_submission())
        respond(quote, accepted=True)
        assert quote.status == QuoteStatus.ACCEPTED.value
        with pytest.raises(InvalidTransitionError):
            respond(quote, accepted=False, reason="changed my mind")

    def test_response_shape(self):
        quote = build_quote(1, quote_submission())
        response = quote_to_response(quote)
        assert response.totalAmount == 25.0
        assert response.estimatedDays.sew == 5
        assert response.items[0].unitPrice == 10.0
