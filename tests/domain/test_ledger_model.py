"""
Tests for the ledger model: invoices, debit notes, credit notes, payments.

Covers:
- Outstanding amount derivation and clamping
- Derived status table
- Append-only payment and credit note application
- Credit note cap (tax inclusive)
- Tax schedules copied onto credit notes
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from billing_kernel.domain.ledger import (
    CreditNote,
    CreditNoteStatus,
    DebitNote,
    DerivedStatus,
    DocumentKind,
    Invoice,
    Payment,
    TaxComponent,
    TaxSchedule,
    approved_credit_total,
    check_credit_note_cap,
    derive_status,
)
from billing_kernel.domain.values import Money
from billing_kernel.exceptions import (
    CapExceededError,
    CreditNoteMismatchError,
    CurrencyMismatchError,
    InvalidAmountError,
    LedgerError,
)
from tests.builders import GST_18, make_credit_note, make_debit_note, make_invoice


class TestOutstandingAmount:
    """outstanding = max(0, total - paid - credit)."""

    def test_unpaid_invoice(self):
        assert make_invoice(total="1000").outstanding_amount == Money.of("1000")

    def test_partial_payment_and_credit(self):
        invoice = make_invoice(total="1000", paid="300", credit="200")
        assert invoice.outstanding_amount == Money.of("500")

    def test_overpayment_clamps_to_zero(self):
        invoice = make_invoice(total="1000", paid="900", credit="200")
        assert invoice.outstanding_amount == Money.zero()

    def test_defaults_are_zero_in_document_currency(self):
        invoice = make_invoice(total="10", currency="USD")
        assert invoice.currency.code == "USD"

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            make_invoice(paid="-1")

    def test_mixed_currency_rejected(self):
        with pytest.raises(CurrencyMismatchError):
            Invoice(
                id="INV-X",
                total_amount=Money.of("100", "INR"),
                paid_amount=Money.of("10", "USD"),
            )


class TestDerivedStatus:
    """Status is a function of paid and outstanding only."""

    @pytest.mark.parametrize(
        "total,paid,credit,expected",
        [
            ("1000", "0", "0", DerivedStatus.UNPAID),
            ("1000", "400", "0", DerivedStatus.PARTIALLY_PAID),
            ("1000", "1000", "0", DerivedStatus.PAID),
            ("1000", "0", "1000", DerivedStatus.PAID),
            ("1000", "0", "300", DerivedStatus.UNPAID),
            ("1000", "1200", "0", DerivedStatus.PAID),
            ("0", "0", "0", DerivedStatus.PAID),
        ],
    )
    def test_status_table(self, total, paid, credit, expected):
        invoice = make_invoice(total=total, paid=paid, credit=credit)
        assert invoice.derived_status == expected

    def test_recorded_status_is_ignored(self):
        invoice = make_invoice(total="1000", paid="1000", recorded_status="unpaid")
        assert invoice.derived_status == DerivedStatus.PAID

    def test_derive_status_function(self):
        assert derive_status(Money.of("1"), Money.of("1")) == DerivedStatus.PARTIALLY_PAID
        assert derive_status(Money.zero(), Money.of("1")) == DerivedStatus.UNPAID

    def test_is_payable(self):
        assert make_invoice(total="1000").is_payable
        assert not make_invoice(total="1000", paid="1000").is_payable


class TestOverdue:
    """Overdue needs a past due date and an outstanding balance."""

    def test_past_due_with_balance(self):
        invoice = make_invoice(due_date=date(2024, 2, 28))
        assert invoice.is_overdue(date(2024, 3, 1))

    def test_due_today_is_not_overdue(self):
        invoice = make_invoice(due_date=date(2024, 3, 1))
        assert not invoice.is_overdue(date(2024, 3, 1))

    def test_paid_is_not_overdue(self):
        invoice = make_invoice(paid="1000", due_date=date(2024, 1, 1))
        assert not invoice.is_overdue(date(2024, 3, 1))

    def test_no_due_date_is_not_overdue(self):
        assert not make_invoice(due_date=None).is_overdue(date(2024, 3, 1))

    def test_datetime_truncated(self):
        invoice = make_invoice(due_date=datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc))
        assert invoice.due_date == date(2024, 3, 1)
        assert not invoice.is_overdue(datetime(2024, 3, 1, 0, 1, tzinfo=timezone.utc))


class TestApplyPayment:
    """Append-only payment recording."""

    def test_returns_new_document(self):
        invoice = make_invoice(total="1000")
        updated = invoice.apply_payment(Money.of("400"))
        assert updated.paid_amount == Money.of("400")
        assert invoice.paid_amount == Money.zero()
        assert updated.derived_status == DerivedStatus.PARTIALLY_PAID

    def test_accepts_payment_object(self):
        invoice = make_invoice(total="1000")
        payment = Payment(document_id="INV-1", amount=Money.of("1000"), reference="pay_1")
        assert invoice.apply_payment(payment).derived_status == DerivedStatus.PAID

    def test_accepts_plain_amount(self):
        assert make_invoice().apply_payment("250").paid_amount == Money.of("250")

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_non_positive_rejected(self, amount):
        with pytest.raises(InvalidAmountError) as exc_info:
            make_invoice().apply_payment(Money.of(amount))
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_payment_for_other_document_rejected(self):
        payment = Payment(document_id="INV-2", amount=Money.of("10"))
        with pytest.raises(LedgerError):
            make_invoice(id="INV-1").apply_payment(payment)

    def test_payment_currency_mismatch(self):
        with pytest.raises(CurrencyMismatchError):
            make_invoice().apply_payment(Money.of("10", "USD"))

    def test_payment_must_be_positive(self):
        with pytest.raises(InvalidAmountError):
            Payment(document_id="INV-1", amount=Money.zero())

    def test_debit_note_payment(self):
        note = make_debit_note(total="500").apply_payment(Money.of("500"))
        assert note.derived_status == DerivedStatus.PAID
        assert note.kind == DocumentKind.DEBIT_NOTE


class TestTaxSchedule:
    """Tax component and schedule rules."""

    def test_names_upper_cased(self):
        assert TaxComponent("cgst", Decimal("9")).name == "CGST"

    def test_negative_rate_rejected(self):
        with pytest.raises(ValueError):
            TaxComponent("CGST", Decimal("-1"))

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            TaxSchedule((TaxComponent("CGST", Decimal("9")), TaxComponent("cgst", Decimal("9"))))

    def test_gross_for(self):
        assert GST_18.gross_for(Money.of("500")) == Money.of("590")
        assert GST_18.total_rate_percent == Decimal("18")

    def test_zero_rated(self):
        schedule = TaxSchedule.of(IGST=0)
        assert schedule.is_zero_rated
        assert schedule.gross_for(Money.of("123.45")) == Money.of("123.45")
        assert TaxSchedule().gross_for(Money.of("10")) == Money.of("10")

    def test_rate_for_missing_component(self):
        assert GST_18.rate_for("UTGST") == Decimal("0")

    def test_gross_rounded_once(self):
        schedule = TaxSchedule.of(CGST="2.5", SGST="2.5")
        # 0.025 + 0.025 unrounded -> 0.05; per-line rounding would give 0.06
        assert schedule.gross_for(Money.of("1.00")) == Money.of("1.05")


class TestCreditNote:
    """Credit note construction."""

    def test_total_includes_tax(self):
        note = make_credit_note(base="500")
        assert note.total_amount == Money.of("590")
        assert note.tax_amount == Money.of("90")

    def test_issue_copies_invoice_schedule(self):
        invoice = make_invoice(tax_schedule=TaxSchedule.of(IGST=18))
        note = CreditNote.issue(invoice, "CN-9", Money.of("100"))
        assert note.tax_schedule == invoice.tax_schedule
        assert note.invoice_id == invoice.id
        assert note.status == CreditNoteStatus.PENDING

    @pytest.mark.parametrize("base", ["0", "-1"])
    def test_non_positive_base_rejected(self, base):
        with pytest.raises(InvalidAmountError):
            make_credit_note(base=base)

    def test_status_string_coerced(self):
        assert make_credit_note(status="rejected").status == CreditNoteStatus.REJECTED

    def test_approve(self):
        note = make_credit_note(status=CreditNoteStatus.PENDING)
        assert note.approve().is_approved
        assert not note.is_approved


class TestCreditNoteCap:
    """sum(existing approved totals) + new total <= invoice total."""

    def setup_method(self):
        self.invoice = make_invoice(total="1000")
        self.existing = [make_credit_note(id="CN-1", base="300", tax_schedule=TaxSchedule())]

    def test_approved_total_only_counts_approved_same_invoice(self):
        notes = self.existing + [
            make_credit_note(id="CN-2", base="100", status=CreditNoteStatus.PENDING),
            make_credit_note(id="CN-3", invoice_id="INV-2", base="100"),
        ]
        total = approved_credit_total("INV-1", notes, self.invoice.currency)
        assert total == Money.of("300")

    def test_within_cap_returns_remaining(self):
        remaining = check_credit_note_cap(self.invoice, Money.of("590"), self.existing)
        assert remaining == Money.of("110")

    def test_exact_cap_allowed(self):
        remaining = check_credit_note_cap(self.invoice, Money.of("700"), self.existing)
        assert remaining == Money.zero()

    def test_over_cap_raises(self):
        with pytest.raises(CapExceededError) as exc_info:
            check_credit_note_cap(self.invoice, Money.of("708"), self.existing)
        err = exc_info.value
        assert err.proposed_total == Decimal("708")
        assert err.remaining_amount == Decimal("700")
        assert err.existing_total == Decimal("300")
        assert err.shortfall == Decimal("8")


class TestApplyCreditNote:
    """Credit notes reduce invoices only, within the cap."""

    def test_applies_total_with_tax(self):
        invoice = make_invoice(total="1000")
        updated = invoice.apply_credit_note(make_credit_note(base="500"), [])
        assert updated.credit_note_amount == Money.of("590")
        assert updated.outstanding_amount == Money.of("410")

    def test_reapplying_same_note_not_double_counted_in_cap(self):
        invoice = make_invoice(total="1000")
        note = make_credit_note(base="800", tax_schedule=TaxSchedule())
        # the note itself appears in the existing list; it is excluded
        updated = invoice.apply_credit_note(note, [note])
        assert updated.credit_note_amount == Money.of("800")

    def test_cap_exceeded(self):
        invoice = make_invoice(total="1000")
        existing = [make_credit_note(id="CN-1", base="300", tax_schedule=TaxSchedule())]
        with pytest.raises(CapExceededError):
            invoice.apply_credit_note(make_credit_note(id="CN-2", base="600"), existing)

    def test_recorded_credit_counts_when_notes_are_missing(self):
        invoice = make_invoice(total="1000", credit="900")
        note = make_credit_note(id="CN-9", base="500", tax_schedule=TaxSchedule())
        with pytest.raises(CapExceededError) as exc_info:
            invoice.apply_credit_note(note, [])
        assert exc_info.value.existing_total == Decimal("900")
        assert exc_info.value.remaining_amount == Decimal("100")

    def test_recorded_credit_allows_what_is_left(self):
        invoice = make_invoice(total="1000", credit="900")
        note = make_credit_note(id="CN-9", base="100", tax_schedule=TaxSchedule())
        updated = invoice.apply_credit_note(note, [])
        assert updated.credit_note_amount == updated.total_amount
        assert updated.derived_status == DerivedStatus.PAID

    def test_wrong_invoice(self):
        with pytest.raises(CreditNoteMismatchError):
            make_invoice(id="INV-1").apply_credit_note(make_credit_note(invoice_id="INV-2"), [])

    def test_pending_note_rejected(self):
        note = make_credit_note(status=CreditNoteStatus.PENDING)
        with pytest.raises(CreditNoteMismatchError):
            make_invoice().apply_credit_note(note, [])

    def test_debit_note_rejects_credit_notes(self):
        note = make_debit_note(id="DN-1")
        with pytest.raises(CreditNoteMismatchError) as exc_info:
            note.apply_credit_note(make_credit_note(invoice_id="DN-1"), [])
        assert exc_info.value.code == "CREDIT_NOTE_MISMATCH"

    def test_debit_note_cannot_carry_credit(self):
        with pytest.raises(ValueError):
            DebitNote(
                id="DN-2",
                total_amount=Money.of("100"),
                credit_note_amount=Money.of("10"),
            )
