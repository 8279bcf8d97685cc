"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum


# ==================== ENUMS ====================

class AccountKindEnum(str, Enum):
    CASH = "cash"
    BANK = "bank"


class TransactionKindEnum(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class MovementKindEnum(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    RETURN = "return"


class InvoiceClassEnum(str, Enum):
    B2B = "B2B"
    B2C = "B2C"


# ==================== ACCOUNT SCHEMAS ====================

class AccountBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    kind: AccountKindEnum = AccountKindEnum.CASH
    bank_name: Optional[str] = Field(None, max_length=255)
    account_number: Optional[str] = Field(None, max_length=50)
    ifsc_code: Optional[str] = Field(None, max_length=20)


class AccountCreate(AccountBase):
    opening_balance: Decimal = Field(default=Decimal("0.00"))
    is_default: bool = False


class AccountResponse(AccountBase):
    id: int
    opening_balance: Decimal
    current_balance: Decimal
    is_default: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountEntryRequest(BaseModel):
    """Credit or debit request"""
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)
    reference_type: Optional[str] = Field(None, max_length=50)
    reference_id: Optional[str] = Field(None, max_length=100)
    transaction_date: Optional[date] = None


class TransactionResponse(BaseModel):
    id: int
    account_id: int
    kind: TransactionKindEnum
    amount: Decimal
    description: Optional[str] = None
    transaction_date: date
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    counterparty_account_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransferCreate(BaseModel):
    from_account_id: int
    to_account_id: int
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)
    transaction_date: Optional[date] = None


class TransferResponse(BaseModel):
    debit: TransactionResponse
    credit: TransactionResponse


class ReversalRequest(BaseModel):
    description: Optional[str] = Field(None, max_length=500)


class BalanceResponse(BaseModel):
    account_id: int
    current_balance: Decimal
    recomputed_balance: Decimal
    is_consistent: bool


# ==================== STOCK SCHEMAS ====================

class StockItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sku: Optional[str] = Field(None, max_length=100)
    hsn_code: Optional[str] = Field(None, max_length=8)
    unit: str = Field(default="pcs", max_length=20)
    sale_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    purchase_price: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax_rate: Decimal = Field(default=Decimal("0.00"), ge=0, le=100)
    reorder_level: Decimal = Field(default=Decimal("0"), ge=0)


class StockItemCreate(StockItemBase):
    opening_stock: Decimal = Field(default=Decimal("0"), ge=0)


class StockItemResponse(StockItemBase):
    id: int
    opening_stock: Decimal
    current_stock: Decimal
    is_low_stock: bool = False
    is_out_of_stock: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockMovementCreate(BaseModel):
    kind: MovementKindEnum
    quantity: Decimal = Field(..., gt=0)
    reference_type: Optional[str] = Field(None, max_length=50)
    reference_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)


class StockMovementResponse(BaseModel):
    id: int
    item_id: int
    kind: MovementKindEnum
    quantity: Decimal
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== TAX SCHEMAS ====================

class InvoiceLine(BaseModel):
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal = Decimal("0")
    tax_rate_percent: Decimal = Decimal("0")


class TaxSplit(BaseModel):
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal
    line_total: Decimal

    model_config = ConfigDict(frozen=True)


class InvoiceTaxBreakdown(BaseModel):
    sub_total: Decimal
    discount: Decimal
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal
    grand_total: Decimal
    is_inter_state: bool
    lines: List[TaxSplit]


class LineTaxRequest(BaseModel):
    line: InvoiceLine
    business_state_code: Optional[str] = Field(None, max_length=2)
    customer_state_code: Optional[str] = Field(None, max_length=2)


class InvoiceTaxRequest(BaseModel):
    lines: List[InvoiceLine] = Field(..., min_length=1)
    business_state_code: Optional[str] = Field(None, max_length=2)
    customer_state_code: Optional[str] = Field(None, max_length=2)


# ==================== CUSTOMER SCHEMAS ====================

class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    gstin: Optional[str] = Field(None, max_length=15)
    state_code: Optional[str] = Field(None, max_length=2)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None

    @field_validator("gstin")
    @classmethod
    def normalise_gstin(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().upper()
        return value or None


class CustomerCreate(CustomerBase):
    pass


class CustomerResponse(CustomerBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== SALES SCHEMAS ====================

class SalesInvoiceItemCreate(BaseModel):
    item_id: Optional[int] = None
    description: Optional[str] = Field(None, max_length=255)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    tax_rate: Optional[Decimal] = Field(None, ge=0)


class SalesInvoiceCreate(BaseModel):
    customer_id: Optional[int] = None
    invoice_date: date
    notes: Optional[str] = None
    payment_account_id: Optional[int] = None
    items: List[SalesInvoiceItemCreate] = Field(..., min_length=1)


class SalesInvoiceItemResponse(BaseModel):
    id: int
    item_id: Optional[int] = None
    description: Optional[str] = None
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    tax_rate: Decimal
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_tax: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class SalesInvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    invoice_date: date
    customer_id: Optional[int] = None
    place_of_supply: Optional[str] = None
    status: str
    sub_total: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payment_account_id: Optional[int] = None
    items: List[SalesInvoiceItemResponse] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== STATUTORY REPORT SCHEMAS ====================

class InvoiceTaxRecord(BaseModel):
    """Invoice as seen by the period report: customer data plus per-line splits"""
    invoice_number: str
    invoice_date: date
    customer_name: str = ""
    customer_gstin: Optional[str] = None
    customer_state_code: Optional[str] = None
    place_of_supply: str = ""
    status: str = "unpaid"
    lines: List[TaxSplit] = []


class ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class B2BRow(ReportModel):
    invoice_number: str
    invoice_date: date
    customer_name: str
    customer_gstin: str
    place_of_supply: str
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_value: Decimal


class B2CRow(ReportModel):
    state: str
    invoice_count: int
    taxable_value: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    total_value: Decimal


class OutwardSupplies(ReportModel):
    taxable_value: Decimal
    igst: Decimal
    cgst: Decimal
    sgst: Decimal
    cess: Decimal


class InputTaxCredit(ReportModel):
    igst: Decimal
    cgst: Decimal
    sgst: Decimal
    cess: Decimal


class NetTaxLiability(ReportModel):
    igst: Decimal
    cgst: Decimal
    sgst: Decimal
    cess: Decimal
    total: Decimal
    itc_applied: bool = False


class PeriodReportSummary(ReportModel):
    month: int
    year: int
    total_invoices: int
    total_tax: Decimal
    # to_camel would turn these into b2B / b2C
    b2b: List[B2BRow] = Field(alias="b2b")
    b2c: List[B2CRow] = Field(alias="b2c")
    outward_supplies: OutwardSupplies
    itc: InputTaxCredit
    net_tax_liability: NetTaxLiability
