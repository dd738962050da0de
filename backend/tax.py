"""
GST computation.

Money is quantised to two decimal places with ROUND_HALF_UP. When the tax is
split between CGST and SGST, SGST takes whatever CGST leaves so the three
components always add up to the tax amount.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class TaxBreakdown:
    tax_amount: float
    cgst_amount: float
    sgst_amount: float
    igst_amount: float
    tax_type: str


def _to_decimal(value) -> Decimal:
    return Decimal(str(value))


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_money(value) -> float:
    """Round an amount to 2 decimal places, half-up"""
    return float(_quantize(_to_decimal(value)))


def is_same_jurisdiction(company_state: Optional[str], customer_state: Optional[str]) -> bool:
    if not company_state or not customer_state:
        return False
    return company_state.strip().lower() == customer_state.strip().lower()


def split_tax(tax_amount, company_state: Optional[str], customer_state: Optional[str]) -> TaxBreakdown:
    """
    Apportion an already computed tax amount between CGST/SGST or IGST.

    The split is done in Decimal, so the components sum exactly to the tax at
    2 dp. Summing the returned floats can be off in the last binary digit.
    """
    tax = _quantize(_to_decimal(tax_amount))

    if is_same_jurisdiction(company_state, customer_state):
        cgst = _quantize(tax / 2)
        sgst = tax - cgst
        return TaxBreakdown(
            tax_amount=float(tax),
            cgst_amount=float(cgst),
            sgst_amount=float(sgst),
            igst_amount=0.0,
            tax_type="CGST+SGST",
        )

    return TaxBreakdown(
        tax_amount=float(tax),
        cgst_amount=0.0,
        sgst_amount=0.0,
        igst_amount=float(tax),
        tax_type="IGST",
    )


def calculate_tax(
    subtotal,
    tax_rate,
    company_state: Optional[str] = None,
    customer_state: Optional[str] = None,
) -> TaxBreakdown:
    """
    Compute GST on a subtotal.

    Intra-state sales (both states present and equal, ignoring case) split the
    tax evenly into CGST and SGST; everything else is charged as IGST.
    """
    tax = _to_decimal(subtotal) * _to_decimal(tax_rate) / Decimal(100)
    return split_tax(tax, company_state, customer_state)
