"""
Sales Service - Customers and Invoices
"""
from typing import Optional, List
from sqlalchemy.orm import Session, joinedload
from decimal import Decimal
from datetime import date
import logging

from ledgerbook.core.exceptions import CustomerNotFound, InvoiceNotFound, ItemNotFound, LedgerError
from ledgerbook.models import (
    Customer, SalesInvoice, SalesInvoiceItem, StockItem, InvoiceStatus, MovementKind
)
from ledgerbook.schemas import (
    CustomerCreate, SalesInvoiceCreate, InvoiceLine, InvoiceTaxRecord, TaxSplit
)
from ledgerbook.services.account_service import AccountService, INVOICE, INVOICE_CANCELLATION
from ledgerbook.services.stock_service import StockService
from ledgerbook.services.tax_service import compute_line_tax, get_place_of_supply, round_money

logger = logging.getLogger(__name__)


class CustomerService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, customer_id: int) -> Optional[Customer]:
        return self.db.query(Customer).filter(Customer.id == customer_id).first()

    def get_all(self) -> List[Customer]:
        return self.db.query(Customer).order_by(Customer.name).all()

    def create(self, customer_data: CustomerCreate) -> Customer:
        state_code = customer_data.state_code
        # A registered customer's state is encoded in the GSTIN
        if not state_code and customer_data.gstin:
            state_code = customer_data.gstin[:2]

        customer = Customer(
            name=customer_data.name,
            gstin=customer_data.gstin,
            state_code=state_code,
            email=customer_data.email,
            phone=customer_data.phone,
            address=customer_data.address
        )
        self.db.add(customer)
        self.db.flush()
        return customer


class SalesService:
    def __init__(self, db: Session, business_state_code: Optional[str] = None):
        self.db = db
        self.business_state_code = business_state_code
        self.accounts = AccountService(db)
        self.stock = StockService(db)

    def get_by_id(self, invoice_id: int) -> Optional[SalesInvoice]:
        return self.db.query(SalesInvoice).options(
            joinedload(SalesInvoice.items),
            joinedload(SalesInvoice.customer)
        ).filter(SalesInvoice.id == invoice_id).first()

    def get_all(self, start_date: date = None, end_date: date = None,
                status: str = None) -> List[SalesInvoice]:
        query = self.db.query(SalesInvoice).options(joinedload(SalesInvoice.customer))
        if start_date:
            query = query.filter(SalesInvoice.invoice_date >= start_date)
        if end_date:
            query = query.filter(SalesInvoice.invoice_date <= end_date)
        if status:
            query = query.filter(SalesInvoice.status == status)
        return query.order_by(SalesInvoice.invoice_date.desc(), SalesInvoice.id.desc()).all()

    def get_next_number(self) -> str:
        """Generate next invoice number"""
        last_invoice = self.db.query(SalesInvoice).order_by(SalesInvoice.id.desc()).first()

        if last_invoice:
            try:
                num = int(last_invoice.invoice_number.replace("INV-", ""))
                return f"INV-{num + 1:05d}"
            except ValueError:
                pass

        return "INV-00001"

    def create(self, invoice_data: SalesInvoiceCreate) -> SalesInvoice:
        """
        Create an invoice, computing GST per line.

        Lines linked to a stock item record a sale movement; when a payment
        account is given the grand total is credited to it. Everything is one
        unit of work.
        """
        customer = None
        if invoice_data.customer_id is not None:
            customer = self.db.query(Customer).filter(Customer.id == invoice_data.customer_id).first()
            if not customer:
                raise CustomerNotFound(f"Customer {invoice_data.customer_id} not found", field="customer_id")

        customer_state = customer.state_code if customer else None
        supply_state = customer_state or self.business_state_code

        # Compute every line before touching any ledger
        computed = []
        for index, item_data in enumerate(invoice_data.items):
            stock_item = None
            if item_data.item_id is not None:
                stock_item = self.db.query(StockItem).filter(StockItem.id == item_data.item_id).first()
                if not stock_item:
                    raise ItemNotFound(f"Stock item {item_data.item_id} not found", field=f"items[{index}].item_id")

            tax_rate = item_data.tax_rate
            if tax_rate is None:
                tax_rate = stock_item.tax_rate if stock_item else Decimal("0")

            line = InvoiceLine(
                quantity=item_data.quantity,
                unit_price=item_data.unit_price,
                discount_percent=item_data.discount_percent,
                tax_rate_percent=tax_rate
            )
            split = compute_line_tax(line, self.business_state_code, customer_state)
            computed.append((item_data, stock_item, line, split))

        sub_total = round_money(sum((line.quantity * line.unit_price for _, _, line, _ in computed), Decimal("0")))
        taxable = sum((split.taxable_value for *_, split in computed), Decimal("0"))
        cgst = sum((split.cgst for *_, split in computed), Decimal("0"))
        sgst = sum((split.sgst for *_, split in computed), Decimal("0"))
        igst = sum((split.igst for *_, split in computed), Decimal("0"))
        tax = cgst + sgst + igst

        with self.db.begin_nested():
            invoice = SalesInvoice(
                invoice_number=self.get_next_number(),
                invoice_date=invoice_data.invoice_date,
                customer_id=customer.id if customer else None,
                place_of_supply=get_place_of_supply(supply_state) if supply_state else None,
                status=InvoiceStatus.UNPAID.value,
                notes=invoice_data.notes,
                sub_total=sub_total,
                discount_amount=sub_total - taxable,
                taxable_amount=taxable,
                cgst_amount=cgst,
                sgst_amount=sgst,
                igst_amount=igst,
                tax_amount=tax,
                total_amount=taxable + tax
            )
            self.db.add(invoice)
            self.db.flush()

            for item_data, stock_item, line, split in computed:
                self.db.add(SalesInvoiceItem(
                    sales_invoice_id=invoice.id,
                    item_id=stock_item.id if stock_item else None,
                    description=item_data.description or (stock_item.name if stock_item else None),
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    discount_percent=line.discount_percent,
                    tax_rate=line.tax_rate_percent,
                    taxable_value=split.taxable_value,
                    cgst=split.cgst,
                    sgst=split.sgst,
                    igst=split.igst,
                    total_tax=split.total_tax,
                    line_total=split.line_total
                ))
                if stock_item:
                    self.stock.record_movement(
                        stock_item.id, MovementKind.SALE, line.quantity,
                        reference_type=INVOICE, reference_id=str(invoice.id)
                    )

            if invoice_data.payment_account_id is not None and invoice.total_amount > 0:
                self.accounts.credit(
                    invoice_data.payment_account_id, invoice.total_amount,
                    description=f"Payment for {invoice.invoice_number}",
                    reference_type=INVOICE, reference_id=str(invoice.id),
                    transaction_date=invoice.invoice_date
                )
                invoice.payment_account_id = invoice_data.payment_account_id
                invoice.status = InvoiceStatus.PAID.value

            self.db.flush()

        logger.info(f"Created invoice {invoice.invoice_number} for {invoice.total_amount}")
        return invoice

    def cancel(self, invoice_id: int) -> SalesInvoice:
        """
        Cancel an invoice. Stock sold on it is put back with adjustment
        movements and any payment received is debited back out.
        """
        invoice = self.get_by_id(invoice_id)
        if not invoice:
            raise InvoiceNotFound(f"Invoice {invoice_id} not found", field="invoice_id")
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise LedgerError(f"Invoice {invoice.invoice_number} is already cancelled", field="status")

        with self.db.begin_nested():
            for line in invoice.items:
                if line.item_id is not None:
                    self.stock.record_movement(
                        line.item_id, MovementKind.ADJUSTMENT, line.quantity,
                        reference_type=INVOICE_CANCELLATION, reference_id=str(invoice.id),
                        notes=f"Cancelled {invoice.invoice_number}"
                    )
            if invoice.status == InvoiceStatus.PAID.value and invoice.payment_account_id:
                self.accounts.debit(
                    invoice.payment_account_id, invoice.total_amount,
                    description=f"Refund for cancelled {invoice.invoice_number}",
                    reference_type=INVOICE_CANCELLATION, reference_id=str(invoice.id)
                )
            invoice.status = InvoiceStatus.CANCELLED.value
            self.db.flush()

        logger.info(f"Cancelled invoice {invoice.invoice_number}")
        return invoice

    @staticmethod
    def to_tax_record(invoice: SalesInvoice) -> InvoiceTaxRecord:
        """Shape a persisted invoice for the period report"""
        customer = invoice.customer
        return InvoiceTaxRecord(
            invoice_number=invoice.invoice_number,
            invoice_date=invoice.invoice_date,
            customer_name=customer.name if customer else "",
            customer_gstin=customer.gstin if customer else None,
            customer_state_code=customer.state_code if customer else None,
            place_of_supply=invoice.place_of_supply or "",
            status=invoice.status,
            lines=[
                TaxSplit(
                    taxable_value=line.taxable_value,
                    cgst=line.cgst,
                    sgst=line.sgst,
                    igst=line.igst,
                    total_tax=line.total_tax,
                    line_total=line.line_total
                )
                for line in invoice.items
            ]
        )
