"""
Tax API Routes - GST computation helpers
"""
from fastapi import APIRouter

from ledgerbook.core.config import settings
from ledgerbook.schemas import LineTaxRequest, InvoiceTaxRequest, TaxSplit, InvoiceTaxBreakdown
from ledgerbook.services.tax_service import (
    compute_line_tax, compute_invoice_tax, get_all_states, validate_gstin, state_code_from_gstin
)

router = APIRouter(prefix="/tax", tags=["Tax"])


@router.post("/line", response_model=TaxSplit)
async def compute_line(request: LineTaxRequest):
    """Compute the GST split for one line"""
    business_state = request.business_state_code or settings.business_state_code
    return compute_line_tax(request.line, business_state, request.customer_state_code)


@router.post("/invoice", response_model=InvoiceTaxBreakdown)
async def compute_invoice(request: InvoiceTaxRequest):
    """Compute every line of an invoice and the invoice totals"""
    business_state = request.business_state_code or settings.business_state_code
    return compute_invoice_tax(request.lines, business_state, request.customer_state_code)


@router.get("/states")
async def list_states():
    """GST state codes"""
    return get_all_states()


@router.get("/gstin/{gstin}")
async def check_gstin(gstin: str):
    """Validate a GSTIN and report its state code"""
    return {
        "gstin": gstin.strip().upper(),
        "is_valid": validate_gstin(gstin),
        "state_code": state_code_from_gstin(gstin)
    }
