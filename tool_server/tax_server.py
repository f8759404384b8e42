"""
Sales Tax Tool

Provides the ``calculate-tax`` tool:
- Looks up a jurisdiction's base sales tax rate (by state name or postal code)
- Returns amount, tax and total as text

Unsupported jurisdictions are not errors: the tool answers with the list of
jurisdictions it knows so the calling agent can correct itself.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Dict, Mapping, Optional

from .base import ToolResult
from .registry import ParameterSpec, ToolDefinition

logger = logging.getLogger("tool_server.tax")

# Statewide base rates; local surcharges are not modelled
TAX_RATES: Dict[str, float] = {
    "Alabama": 0.04,
    "Arizona": 0.056,
    "California": 0.0725,
    "Colorado": 0.029,
    "Florida": 0.06,
    "Georgia": 0.04,
    "Illinois": 0.0625,
    "Indiana": 0.07,
    "Massachusetts": 0.0625,
    "Michigan": 0.06,
    "New Jersey": 0.06625,
    "New York": 0.04,
    "North Carolina": 0.0475,
    "Ohio": 0.0575,
    "Pennsylvania": 0.06,
    "Texas": 0.0625,
    "Virginia": 0.053,
    "Washington": 0.065,
}

POSTAL_CODES: Dict[str, str] = {
    "AL": "Alabama",
    "AZ": "Arizona",
    "CA": "California",
    "CO": "Colorado",
    "FL": "Florida",
    "GA": "Georgia",
    "IL": "Illinois",
    "IN": "Indiana",
    "MA": "Massachusetts",
    "MI": "Michigan",
    "NJ": "New Jersey",
    "NY": "New York",
    "NC": "North Carolina",
    "OH": "Ohio",
    "PA": "Pennsylvania",
    "TX": "Texas",
    "VA": "Virginia",
    "WA": "Washington",
}

CENTS = Decimal("0.01")


def resolve_jurisdiction(jurisdiction: str, rates: Mapping[str, float]) -> Optional[str]:
    """Return the key of ``rates`` matching ``jurisdiction``, or None."""
    wanted = jurisdiction.strip()
    folded = wanted.casefold()
    for name in rates:
        if name.casefold() == folded:
            return name
    name = POSTAL_CODES.get(wanted.upper())
    if name is not None and name in rates:
        return name
    return None


def _money(value: Decimal) -> str:
    return f"${value.quantize(CENTS, rounding=ROUND_HALF_UP):,.2f}"


def calculate_tax_text(amount: float, jurisdiction: str, rates: Mapping[str, float]) -> str:
    resolved = resolve_jurisdiction(jurisdiction, rates)
    if resolved is None:
        supported = ", ".join(sorted(rates))
        return (
            f"Sorry, I don't have a sales tax rate for '{jurisdiction}'. "
            f"Supported jurisdictions: {supported}."
        )
    value = Decimal(str(amount))
    if not value.is_finite():
        return f"The amount must be a finite number, got {amount}."
    if value < 0:
        return f"The amount must not be negative, got {amount}."

    rate = Decimal(str(rates[resolved]))
    percent = f"{float(rate * 100):g}%"
    with localcontext() as ctx:
        # room for every whole digit of the amount, its cents and the rate's digits
        ctx.prec = max(ctx.prec, value.adjusted() + len(rate.as_tuple().digits) + 8)
        base = value.quantize(CENTS, rounding=ROUND_HALF_UP)
        tax = (base * rate).quantize(CENTS, rounding=ROUND_HALF_UP)
        return (
            f"Sales tax for {resolved} ({percent}): "
            f"Amount = {_money(base)}, Tax = {_money(tax)}, Total = {_money(base + tax)}"
        )


def make_tax_tool(rates: Optional[Mapping[str, float]] = None) -> ToolDefinition:
    """Build the ``calculate-tax`` definition over a rate table."""
    table = dict(TAX_RATES if rates is None else rates)

    async def calculate_tax(params: Dict[str, Any]) -> ToolResult:
        amount = params["amount"]
        jurisdiction = params["jurisdiction"]
        logger.info(f"Calculating tax: amount={amount}, jurisdiction={jurisdiction}")
        return ToolResult.text(calculate_tax_text(amount, jurisdiction, table))

    return ToolDefinition(
        name="calculate-tax",
        description="Calculates sales tax for an amount in a US state jurisdiction.",
        parameters=(
            ParameterSpec("amount", "number", "The transaction amount in dollars"),
            ParameterSpec("jurisdiction", "string", "State name or postal code (e.g. Texas, CA, NY)"),
        ),
        handler=calculate_tax,
    )
