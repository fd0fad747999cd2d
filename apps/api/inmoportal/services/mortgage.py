"""Mortgage estimate for a listing price."""
from __future__ import annotations

from ..schemas.properties import MortgageQuoteRequest, MortgageQuoteResponse


def monthly_payment(principal: float, annual_rate_pct: float, term_years: int) -> float:
    """Standard amortised payment; a zero rate spreads the principal evenly."""

    months = term_years * 12
    if principal <= 0:
        return 0.0
    rate = annual_rate_pct / 100 / 12
    if rate == 0:
        return principal / months
    factor = (1 + rate) ** months
    return principal * rate * factor / (factor - 1)


def quote_mortgage(price: float, currency: str, request: MortgageQuoteRequest) -> MortgageQuoteResponse:
    principal = price * (1 - request.down_payment_pct / 100)
    payment = monthly_payment(principal, request.annual_rate_pct, request.term_years)
    total_paid = payment * request.term_years * 12
    return MortgageQuoteResponse(
        price=price,
        currency=currency,
        principal=round(principal, 2),
        monthly_payment=round(payment, 2),
        total_paid=round(total_paid, 2),
        total_interest=round(total_paid - principal, 2),
    )
