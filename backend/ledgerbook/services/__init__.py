# Services Package
from ledgerbook.services.account_service import AccountService
from ledgerbook.services.stock_service import StockService, is_low_stock, is_out_of_stock
from ledgerbook.services.tax_service import compute_line_tax, compute_invoice_tax, classify_invoice
from ledgerbook.services.sales_service import CustomerService, SalesService
from ledgerbook.services.report_service import (
    ReportService, build_period_report, to_gstr1_json, to_gstr3b_json,
    export_period_report_excel
)

__all__ = [
    'AccountService',
    'StockService',
    'is_low_stock',
    'is_out_of_stock',
    'compute_line_tax',
    'compute_invoice_tax',
    'classify_invoice',
    'CustomerService',
    'SalesService',
    'ReportService',
    'build_period_report',
    'to_gstr1_json',
    'to_gstr3b_json',
    'export_period_report_excel',
]
