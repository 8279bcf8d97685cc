"""
SQLAlchemy Models for the Ledger
"""
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Date, Numeric,
    ForeignKey, Index, CheckConstraint, event
)
from sqlalchemy.orm import relationship
import enum

from ledgerbook.core.database import Base
from ledgerbook.core.exceptions import ImmutableRecord


# ==================== ENUMS ====================

class AccountKind(enum.Enum):
    CASH = "cash"
    BANK = "bank"


class TransactionKind(enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class MovementKind(enum.Enum):
    PURCHASE = "purchase"
    SALE = "sale"
    ADJUSTMENT = "adjustment"
    RETURN = "return"


# purchase and adjustment add to stock, sale and return take from it
STOCK_INCREASING_KINDS = (MovementKind.PURCHASE.value, MovementKind.ADJUSTMENT.value)
STOCK_DECREASING_KINDS = (MovementKind.SALE.value, MovementKind.RETURN.value)


class InvoiceStatus(enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    CANCELLED = "cancelled"


# ==================== ACCOUNT LEDGER ====================

class Account(Base):
    """Cash or bank account with a running balance"""
    __tablename__ = 'accounts'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    kind = Column(String(20), nullable=False, default=AccountKind.CASH.value)
    bank_name = Column(String(255), nullable=True)
    account_number = Column(String(50), nullable=True)
    ifsc_code = Column(String(20), nullable=True)
    opening_balance = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    current_balance = Column(Numeric(15, 2), default=Decimal("0.00"), nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    transactions = relationship(
        "AccountTransaction",
        back_populates="account",
        foreign_keys="AccountTransaction.account_id",
        order_by="AccountTransaction.id"
    )

    __table_args__ = (
        CheckConstraint("kind IN ('cash', 'bank')", name='ck_accounts_kind'),
    )


class AccountTransaction(Base):
    """Immutable credit or debit against an account"""
    __tablename__ = 'account_transactions'

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey('accounts.id', ondelete='RESTRICT'), nullable=False)
    kind = Column(String(10), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    transaction_date = Column(Date, nullable=False, default=date.today)
    description = Column(Text, nullable=True)
    reference_type = Column(String(50), nullable=True)  # invoice, purchase, transfer, reversal
    reference_id = Column(String(100), nullable=True)
    counterparty_account_id = Column(Integer, ForeignKey('accounts.id', ondelete='RESTRICT'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    account = relationship("Account", back_populates="transactions", foreign_keys=[account_id])
    counterparty_account = relationship("Account", foreign_keys=[counterparty_account_id])

    __table_args__ = (
        CheckConstraint("amount > 0", name='ck_account_transactions_amount_positive'),
        CheckConstraint("kind IN ('credit', 'debit')", name='ck_account_transactions_kind'),
        Index('ix_account_transactions_account_id', 'account_id'),
    )

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.kind == TransactionKind.CREDIT.value else -self.amount


# ==================== STOCK LEDGER ====================

class StockItem(Base):
    """Stock item with a running on-hand quantity"""
    __tablename__ = 'stock_items'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=True)
    hsn_code = Column(String(8), nullable=True)
    unit = Column(String(20), default="pcs")
    sale_price = Column(Numeric(15, 2), default=Decimal("0.00"))
    purchase_price = Column(Numeric(15, 2), default=Decimal("0.00"))
    tax_rate = Column(Numeric(5, 2), default=Decimal("0.00"))
    opening_stock = Column(Numeric(15, 3), default=Decimal("0"), nullable=False)
    current_stock = Column(Numeric(15, 3), default=Decimal("0"), nullable=False)
    reorder_level = Column(Numeric(15, 3), default=Decimal("0"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    movements = relationship("StockMovement", back_populates="item", order_by="StockMovement.id")

    __table_args__ = (
        Index('ix_stock_items_sku', 'sku'),
    )


class StockMovement(Base):
    """Immutable stock movement record"""
    __tablename__ = 'stock_movements'

    id = Column(Integer, primary_key=True)
    item_id = Column(Integer, ForeignKey('stock_items.id', ondelete='RESTRICT'), nullable=False)
    kind = Column(String(20), nullable=False)
    quantity = Column(Numeric(15, 3), nullable=False)
    reference_type = Column(String(50), nullable=True)
    reference_id = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    item = relationship("StockItem", back_populates="movements")

    __table_args__ = (
        CheckConstraint("quantity > 0", name='ck_stock_movements_quantity_positive'),
        Index('ix_stock_movements_item_id', 'item_id'),
    )

    @property
    def signed_quantity(self) -> Decimal:
        return self.quantity if self.kind in STOCK_INCREASING_KINDS else -self.quantity


# ==================== SALES MODELS ====================

class Customer(Base):
    """Customer / party"""
    __tablename__ = 'customers'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    gstin = Column(String(15), nullable=True)
    state_code = Column(String(2), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    sales_invoices = relationship("SalesInvoice", back_populates="customer")


class SalesInvoice(Base):
    """Sales Invoice"""
    __tablename__ = 'sales_invoices'

    id = Column(Integer, primary_key=True)
    invoice_number = Column(String(50), nullable=False, unique=True)
    invoice_date = Column(Date, nullable=False)
    customer_id = Column(Integer, ForeignKey('customers.id', ondelete='SET NULL'), nullable=True)
    place_of_supply = Column(String(100), nullable=True)
    status = Column(String(20), default=InvoiceStatus.UNPAID.value, nullable=False)
    notes = Column(Text, nullable=True)
    sub_total = Column(Numeric(15, 2), default=Decimal("0.00"))
    discount_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    taxable_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    cgst_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    sgst_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    igst_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    tax_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    payment_account_id = Column(Integer, ForeignKey('accounts.id', ondelete='SET NULL'), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customer = relationship("Customer", back_populates="sales_invoices")
    items = relationship("SalesInvoiceItem", back_populates="sales_invoice",
                         cascade="all, delete-orphan", order_by="SalesInvoiceItem.id")
    payment_account = relationship("Account")

    __table_args__ = (
        Index('ix_sales_invoices_invoice_date', 'invoice_date'),
    )


class SalesInvoiceItem(Base):
    """Sales Invoice Line Item with its computed tax split"""
    __tablename__ = 'sales_invoice_items'

    id = Column(Integer, primary_key=True)
    sales_invoice_id = Column(Integer, ForeignKey('sales_invoices.id', ondelete='CASCADE'), nullable=False)
    item_id = Column(Integer, ForeignKey('stock_items.id', ondelete='SET NULL'), nullable=True)
    description = Column(String(255), nullable=True)
    quantity = Column(Numeric(15, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), default=Decimal("0.00"))
    tax_rate = Column(Numeric(5, 2), default=Decimal("0.00"))
    taxable_value = Column(Numeric(15, 2), nullable=False)
    cgst = Column(Numeric(15, 2), default=Decimal("0.00"))
    sgst = Column(Numeric(15, 2), default=Decimal("0.00"))
    igst = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_tax = Column(Numeric(15, 2), default=Decimal("0.00"))
    line_total = Column(Numeric(15, 2), nullable=False)

    # Relationships
    sales_invoice = relationship("SalesInvoice", back_populates="items")
    item = relationship("StockItem")


# ==================== IMMUTABILITY ====================

def _refuse_update(mapper, connection, target):
    raise ImmutableRecord(
        f"{target.__class__.__name__} {target.id} is immutable; record an offsetting entry instead"
    )


event.listen(AccountTransaction, "before_update", _refuse_update)
event.listen(StockMovement, "before_update", _refuse_update)
