"""Unit tests for bill calculation."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from society_portal.errors import InvalidScheduleError, ValidationError
from society_portal.models.payment import PaymentRecord
from society_portal.models.resident import Resident
from society_portal.models.society import Society
from society_portal.services.billing_service import (
    calculate_bill,
    compute_bill,
    month_diff,
    monthly_total,
    numeric_charges,
    validate_fee_schedule,
)

SCHEDULE = {"societyCharges": 500, "waterCharges": 100}


class TestMonthDiff:
    """Tests for calendar month difference."""

    @pytest.mark.parametrize(
        "start,end,expected",
        [
            (date(2024, 1, 15), date(2024, 2, 15), 1),
            (date(2024, 1, 15), date(2024, 2, 14), 0),
            (date(2024, 1, 31), date(2024, 2, 29), 0),
            (date(2024, 1, 1), date(2024, 4, 1), 3),
            (date(2023, 11, 20), date(2024, 2, 20), 3),
            (date(2024, 3, 10), date(2024, 3, 10), 0),
        ],
    )
    def test_month_diff(self, start, end, expected):
        assert month_diff(start, end) == expected

    def test_month_diff_ignores_time_of_day(self):
        start = datetime(2024, 1, 15, 23, 59, tzinfo=timezone.utc)
        end = datetime(2024, 2, 15, 0, 1, tzinfo=timezone.utc)
        assert month_diff(start, end, timezone.utc) == 1

    def test_month_diff_negative_when_end_before_start(self):
        assert month_diff(date(2024, 5, 1), date(2024, 3, 1)) == -2


class TestMonthlyTotal:
    """Tests for fee schedule totals."""

    def test_sums_numeric_entries(self):
        assert monthly_total(SCHEDULE) == Decimal("600")

    def test_skips_non_numeric_entries(self):
        schedule = {"societyCharges": 500, "note": "paid yearly", "flag": True, "nan": float("nan")}
        assert monthly_total(schedule) == Decimal("500")

    def test_numeric_charges_drop_notes(self):
        schedule = {"societyCharges": 500, "note": "due by 5th", "waterCharges": 100.5}
        assert numeric_charges(schedule) == {
            "societyCharges": Decimal("500"),
            "waterCharges": Decimal("100.5"),
        }

    def test_decimal_precision(self):
        assert monthly_total({"a": 0.1, "b": 0.2}) == Decimal("0.3")

    @pytest.mark.parametrize("schedule", [None, {}, {"note": "n/a"}, {"flag": False}])
    def test_no_numeric_entries_raises(self, schedule):
        with pytest.raises(InvalidScheduleError):
            monthly_total(schedule)

    def test_invalid_schedule_is_validation_error(self):
        with pytest.raises(ValidationError):
            monthly_total({})


class TestCalculateBill:
    """Tests for the bill formula."""

    def test_scenario_new_resident_same_day(self):
        """Joined today, never paid: one billable month."""
        summary = calculate_bill(date(2024, 1, 1), False, SCHEDULE, date(2024, 1, 1))

        assert summary.monthly_total == Decimal("600")
        assert summary.months_owed == 1
        assert summary.due == 0
        assert summary.credit == 0
        assert summary.total_amount == Decimal("600")

    def test_scenario_three_months_since_payment(self):
        summary = calculate_bill(date(2024, 1, 1), True, SCHEDULE, date(2024, 4, 1))

        assert summary.months_owed == 3
        assert summary.due == Decimal("1200")
        assert summary.credit == 0
        assert summary.total_amount == Decimal("1800")

    def test_no_prior_payment_adds_joining_month(self):
        joined = date(2024, 1, 10)
        now = date(2024, 6, 12)
        summary = calculate_bill(joined, False, SCHEDULE, now)
        assert summary.months_owed == month_diff(joined, now) + 1

    def test_paid_today_gives_full_credit(self):
        summary = calculate_bill(date(2024, 3, 5), True, SCHEDULE, date(2024, 3, 5))

        assert summary.months_owed == 0
        assert summary.credit == Decimal("600")
        assert summary.due == 0
        assert summary.total_amount == 0

    def test_paid_one_month_ago_bills_current_month(self):
        summary = calculate_bill(date(2024, 2, 5), True, SCHEDULE, date(2024, 3, 5))

        assert summary.months_owed == 1
        assert summary.due == 0
        assert summary.credit == 0
        assert summary.total_amount == Decimal("600")

    @pytest.mark.parametrize("months", [2, 3, 7, 13])
    def test_arrears(self, months):
        paid = date(2023, 1, 20)
        now = date(2023 + (months // 12), 1 + (months % 12), 20)
        summary = calculate_bill(paid, True, SCHEDULE, now)

        assert summary.months_owed == months
        assert summary.due == (months - 1) * Decimal("600")
        assert summary.total_amount == summary.monthly_total + summary.due

    def test_payment_dated_in_future_owes_nothing_extra(self):
        summary = calculate_bill(date(2024, 5, 1), True, SCHEDULE, date(2024, 3, 1))

        assert summary.months_owed == -2
        assert summary.due == 0
        assert summary.credit == 0
        assert summary.total_amount == Decimal("600")

    def test_invalid_schedule_raises(self):
        with pytest.raises(InvalidScheduleError):
            calculate_bill(date(2024, 1, 1), True, {"note": "x"}, date(2024, 2, 1))


class TestComputeBill:
    """compute_bill picks the base date from the resident record."""

    def _resident(self, created_at):
        return Resident(username="r@example.com", unit_id="A-1", created_at=created_at)

    def test_uses_join_date_without_payments(self):
        resident = self._resident(datetime(2024, 1, 1, tzinfo=timezone.utc))
        society = Society(name="S", fee_schedule=SCHEDULE)

        summary = compute_bill(resident, society, datetime(2024, 1, 1, tzinfo=timezone.utc))

        assert summary.months_owed == 1
        assert summary.total_amount == Decimal("600")

    def test_uses_latest_payment(self):
        resident = self._resident(datetime(2020, 1, 1, tzinfo=timezone.utc))
        resident.payments = [
            PaymentRecord(
                paid_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                amount=Decimal("600"),
                invoice_id="order_b",
                payment_id="pay_b",
            ),
            PaymentRecord(
                paid_at=datetime(2023, 6, 1, tzinfo=timezone.utc),
                amount=Decimal("600"),
                invoice_id="order_a",
                payment_id="pay_a",
            ),
        ]
        society = Society(name="S", fee_schedule=SCHEDULE)

        summary = compute_bill(resident, society, datetime(2024, 4, 1, tzinfo=timezone.utc))

        assert resident.last_payment.invoice_id == "order_b"
        assert summary.months_owed == 3
        assert summary.total_amount == Decimal("1800")


class TestValidateFeeSchedule:
    """Tests for admin-submitted fee schedules."""

    def test_accepts_valid_schedule(self):
        assert validate_fee_schedule({" waterCharges ": 100, "sinkingFund": 0}) == {
            "waterCharges": 100,
            "sinkingFund": 0,
        }

    def test_converts_decimal_for_json(self):
        cleaned = validate_fee_schedule({"societyCharges": Decimal("500.50")})
        assert cleaned == {"societyCharges": 500.5}

    @pytest.mark.parametrize(
        "schedule,message",
        [
            ({}, "at least one charge"),
            ({"  ": 100}, "non-empty"),
            ({"waterCharges": "100"}, "must be a number"),
            ({"waterCharges": True}, "must be a number"),
            ({"waterCharges": float("inf")}, "must be a number"),
            ({"waterCharges": -1}, "must not be negative"),
        ],
    )
    def test_rejects_invalid_schedule(self, schedule, message):
        with pytest.raises(ValidationError, match=message):
            validate_fee_schedule(schedule)
