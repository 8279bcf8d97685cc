"""
Tax Service - GST line computation and invoice classification

Pure functions: nothing here touches the database.
"""
from typing import Optional, List, Iterable, Any
from decimal import Decimal, ROUND_HALF_UP

from ledgerbook.core.exceptions import InvalidLineInput
from ledgerbook.core.gst import (
    STATE_CODES, validate_gstin, state_code_from_gstin, format_gstin,
    get_state_name, get_place_of_supply, get_all_states
)
from ledgerbook.schemas import InvoiceLine, TaxSplit, InvoiceTaxBreakdown

B2B = "B2B"
B2C = "B2C"

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def round_money(value: Decimal) -> Decimal:
    """Round half-up to two decimal places"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _as_decimal(value, field: str) -> Decimal:
    if value is None:
        raise InvalidLineInput(f"{field} is required", field=field)
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except ArithmeticError:
        raise InvalidLineInput(f"{field} must be a number, got {value!r}", field=field)


def validate_line(line: InvoiceLine) -> None:
    if _as_decimal(line.quantity, "quantity") <= 0:
        raise InvalidLineInput("Quantity must be greater than zero", field="quantity")
    if _as_decimal(line.unit_price, "unit_price") < 0:
        raise InvalidLineInput("Unit price cannot be negative", field="unit_price")
    discount = _as_decimal(line.discount_percent, "discount_percent")
    if discount < 0 or discount > HUNDRED:
        raise InvalidLineInput("Discount must be between 0 and 100 percent", field="discount_percent")
    if _as_decimal(line.tax_rate_percent, "tax_rate_percent") < 0:
        raise InvalidLineInput("Tax rate cannot be negative", field="tax_rate_percent")


def is_inter_state(business_state_code: Optional[str], customer_state_code: Optional[str]) -> bool:
    """A supply is inter-state only when both states are known and differ"""
    if not business_state_code or not customer_state_code:
        return False
    return business_state_code.strip() != customer_state_code.strip()


def compute_line_tax(line: InvoiceLine, business_state_code: Optional[str],
                     customer_state_code: Optional[str]) -> TaxSplit:
    """
    Compute taxable value and the CGST/SGST/IGST split for one line.

    Every step runs at full precision and the tax is rounded once. CGST takes
    half of the full-precision tax rounded half-up and SGST takes the
    remainder, so a line costs the same in either jurisdiction and
    cgst + sgst + igst == total_tax holds exactly.
    """
    validate_line(line)

    quantity = _as_decimal(line.quantity, "quantity")
    unit_price = _as_decimal(line.unit_price, "unit_price")
    discount_percent = _as_decimal(line.discount_percent, "discount_percent")
    tax_rate = _as_decimal(line.tax_rate_percent, "tax_rate_percent")

    base_amount = quantity * unit_price
    discount_amount = base_amount * discount_percent / HUNDRED
    taxable_value = base_amount - discount_amount
    total_tax = taxable_value * tax_rate / HUNDRED

    rounded_taxable = round_money(taxable_value)
    rounded_tax = round_money(total_tax)

    if is_inter_state(business_state_code, customer_state_code):
        cgst = sgst = ZERO
        igst = rounded_tax
    else:
        cgst = round_money(total_tax / 2)
        sgst = rounded_tax - cgst
        igst = ZERO

    return TaxSplit(
        taxable_value=rounded_taxable,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_tax=rounded_tax,
        line_total=rounded_taxable + rounded_tax,
    )


def compute_invoice_tax(lines: List[InvoiceLine], business_state_code: Optional[str],
                        customer_state_code: Optional[str]) -> InvoiceTaxBreakdown:
    """Compute every line and roll the splits up to invoice level"""
    splits = [compute_line_tax(line, business_state_code, customer_state_code) for line in lines]

    sub_total = sum((l.quantity * l.unit_price for l in lines), ZERO)
    taxable_value = sum((s.taxable_value for s in splits), ZERO)
    cgst = sum((s.cgst for s in splits), ZERO)
    sgst = sum((s.sgst for s in splits), ZERO)
    igst = sum((s.igst for s in splits), ZERO)
    total_tax = cgst + sgst + igst

    return InvoiceTaxBreakdown(
        sub_total=round_money(sub_total),
        discount=round_money(sub_total) - taxable_value,
        taxable_value=taxable_value,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_tax=total_tax,
        grand_total=taxable_value + total_tax,
        is_inter_state=is_inter_state(business_state_code, customer_state_code),
        lines=splits,
    )


def _customer_gstin(invoice: Any) -> Optional[str]:
    gstin = getattr(invoice, "customer_gstin", None)
    if gstin is None:
        customer = getattr(invoice, "customer", None)
        gstin = getattr(customer, "gstin", None) if customer is not None else None
    return gstin


def classify_invoice(invoice: Any) -> str:
    """B2B when the customer has a GSTIN, otherwise B2C"""
    gstin = _customer_gstin(invoice)
    return B2B if gstin and gstin.strip() else B2C


def sum_splits(splits: Iterable[TaxSplit]) -> TaxSplit:
    taxable = cgst = sgst = igst = ZERO
    for split in splits:
        taxable += split.taxable_value
        cgst += split.cgst
        sgst += split.sgst
        igst += split.igst
    total_tax = cgst + sgst + igst
    return TaxSplit(
        taxable_value=taxable,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total_tax=total_tax,
        line_total=taxable + total_tax,
    )


__all__ = [
    "B2B", "B2C", "STATE_CODES",
    "round_money", "validate_line", "is_inter_state",
    "compute_line_tax", "compute_invoice_tax", "classify_invoice", "sum_splits",
    "validate_gstin", "state_code_from_gstin", "format_gstin",
    "get_state_name", "get_place_of_supply", "get_all_states",
]
