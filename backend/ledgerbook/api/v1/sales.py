"""
Sales API Routes - Customers and Invoices
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ledgerbook.core.config import settings
from ledgerbook.core.database import get_db
from ledgerbook.schemas import (
    CustomerCreate, CustomerResponse, SalesInvoiceCreate, SalesInvoiceResponse
)
from ledgerbook.services.sales_service import CustomerService, SalesService

router = APIRouter(prefix="/sales", tags=["Sales"])


def get_sales_service(db: Session = Depends(get_db)) -> SalesService:
    return SalesService(db, business_state_code=settings.business_state_code)


# ==================== CUSTOMERS ====================

@router.get("/customers", response_model=List[CustomerResponse])
async def list_customers(db: Session = Depends(get_db)):
    """List all customers"""
    return CustomerService(db).get_all()


@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(customer_data: CustomerCreate, db: Session = Depends(get_db)):
    """Create a new customer"""
    customer = CustomerService(db).create(customer_data)
    db.commit()
    return customer


# ==================== INVOICES ====================

@router.get("/invoices", response_model=List[SalesInvoiceResponse])
async def list_invoices(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    service: SalesService = Depends(get_sales_service)
):
    """List invoices, newest first"""
    return service.get_all(start_date, end_date, status)


@router.post("/invoices", response_model=SalesInvoiceResponse, status_code=201)
async def create_invoice(
    invoice_data: SalesInvoiceCreate,
    service: SalesService = Depends(get_sales_service)
):
    """Create an invoice with GST computed per line"""
    invoice = service.create(invoice_data)
    service.db.commit()
    return service.get_by_id(invoice.id)


@router.get("/invoices/{invoice_id}", response_model=SalesInvoiceResponse)
async def get_invoice(invoice_id: int, service: SalesService = Depends(get_sales_service)):
    """Get invoice by ID"""
    invoice = service.get_by_id(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.post("/invoices/{invoice_id}/cancel", response_model=SalesInvoiceResponse)
async def cancel_invoice(invoice_id: int, service: SalesService = Depends(get_sales_service)):
    """Cancel an invoice and return its stock"""
    invoice = service.cancel(invoice_id)
    service.db.commit()
    return service.get_by_id(invoice.id)
