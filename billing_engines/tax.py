"""
Tax Engine - Break a credit note base amount down by tax component.

Credit notes carry the tax schedule of the invoice they are issued against
(e.g. CGST 9% + SGST 9% + IGST 0%).  This engine produces the per-component
lines shown next to a credit note and the tax-inclusive gross that the
credit note cap is checked against.

Pure functions with no I/O - the schedule is provided as a parameter.

Usage:
    from billing_engines.tax import CreditNoteTaxCalculator
    from billing_kernel.domain import Money, TaxSchedule

    breakdown = CreditNoteTaxCalculator().calculate(
        base=Money.of("500.00"),
        schedule=TaxSchedule.of(CGST=9, SGST=9),
    )
    print(breakdown.tax_total)  # Money: 90.00 INR
    print(breakdown.gross)      # Money: 590.00 INR
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from billing_kernel.domain.ledger import TaxSchedule
from billing_kernel.domain.values import Money, sum_money
from billing_kernel.logging_config import get_logger
from billing_engines.tracer import traced_engine

logger = get_logger("engines.tax")


@dataclass(frozen=True)
class TaxLine:
    """Calculated tax for one component, rounded to currency precision."""

    name: str
    rate_percent: Decimal
    amount: Money


@dataclass(frozen=True)
class TaxBreakdown:
    """
    Complete tax breakdown for a base amount.

    ``gross`` is computed from the unrounded component taxes and rounded
    once, so it can differ from ``base + sum(line.amount)`` by a rounding
    unit.  The cap is always checked against ``gross``.
    """

    base: Money
    lines: tuple[TaxLine, ...]
    gross: Money

    @property
    def tax_total(self) -> Money:
        return self.gross - self.base

    @property
    def line_total(self) -> Money:
        """Sum of the rounded display lines."""
        return sum_money((line.amount for line in self.lines), self.base.currency)

    @property
    def effective_rate_percent(self) -> Decimal:
        if self.base.is_zero:
            return Decimal("0")
        return self.tax_total.amount / self.base.amount * Decimal("100")

    def line_for(self, name: str) -> TaxLine | None:
        wanted = name.strip().upper()
        for line in self.lines:
            if line.name == wanted:
                return line
        return None


class CreditNoteTaxCalculator:
    """
    Calculate credit note taxes from an invoice's tax schedule.

    Pure functions - no I/O, no database access.
    """

    @traced_engine("credit_note_tax", "1.0", fingerprint_fields=("base", "schedule"))
    def calculate(self, base: Money, schedule: TaxSchedule) -> TaxBreakdown:
        """
        Calculate the tax breakdown for ``base`` under ``schedule``.

        Raises:
            ValueError: If ``base`` is negative.
        """
        if base.is_negative:
            raise ValueError(f"Tax base cannot be negative: {base}")

        lines = tuple(
            TaxLine(name=name, rate_percent=schedule.rate_for(name), amount=tax.round())
            for name, tax in schedule.tax_amounts(base)
        )
        breakdown = TaxBreakdown(base=base, lines=lines, gross=schedule.gross_for(base))

        logger.debug("credit_note_tax_calculated", extra={
            "base": str(base.amount),
            "currency": base.currency.code,
            "tax_total": str(breakdown.tax_total.amount),
            "gross": str(breakdown.gross.amount),
            "component_count": len(lines),
        })
        return breakdown
