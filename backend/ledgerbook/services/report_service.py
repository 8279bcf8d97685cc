"""
Report Service - Monthly GST return summaries (GSTR-1 / GSTR-3B)
"""
from typing import List, Dict, Iterable
from sqlalchemy.orm import Session, joinedload
from collections import defaultdict
from decimal import Decimal
from datetime import date
from io import BytesIO
import calendar

import openpyxl
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from ledgerbook.core.exceptions import LedgerError
from ledgerbook.models import SalesInvoice, InvoiceStatus
from ledgerbook.schemas import (
    InvoiceTaxRecord, B2BRow, B2CRow, OutwardSupplies, InputTaxCredit,
    NetTaxLiability, PeriodReportSummary
)
from ledgerbook.services.tax_service import B2B, classify_invoice, sum_splits, round_money

ZERO = Decimal("0.00")
UNKNOWN_STATE = "Unknown"


def period_bounds(month: int, year: int):
    if not 1 <= month <= 12:
        raise LedgerError(f"Month must be between 1 and 12, got {month}", field="month")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def build_period_report(invoices: Iterable[InvoiceTaxRecord], month: int, year: int) -> PeriodReportSummary:
    """
    Aggregate one month of invoices into the statutory summary.

    Input tax credit is not tracked anywhere upstream, so ITC is reported as
    explicit zeros and the net liability is flagged as not reduced by ITC.
    """
    start, end = period_bounds(month, year)

    in_period = [
        inv for inv in invoices
        if start <= inv.invoice_date <= end and inv.status != InvoiceStatus.CANCELLED.value
    ]
    in_period.sort(key=lambda inv: (inv.invoice_date, inv.invoice_number))

    b2b_rows: List[B2BRow] = []
    b2c_groups: Dict[str, List] = defaultdict(list)
    taxable = cgst = sgst = igst = ZERO

    for invoice in in_period:
        totals = sum_splits(invoice.lines)
        taxable += totals.taxable_value
        cgst += totals.cgst
        sgst += totals.sgst
        igst += totals.igst

        if classify_invoice(invoice) == B2B:
            b2b_rows.append(B2BRow(
                invoice_number=invoice.invoice_number,
                invoice_date=invoice.invoice_date,
                customer_name=invoice.customer_name,
                customer_gstin=invoice.customer_gstin.strip(),
                place_of_supply=invoice.place_of_supply,
                taxable_value=totals.taxable_value,
                cgst=totals.cgst,
                sgst=totals.sgst,
                igst=totals.igst,
                total_value=totals.line_total,
            ))
        else:
            b2c_groups[invoice.customer_state_code or UNKNOWN_STATE].append(totals)

    b2c_rows = []
    for state in sorted(b2c_groups):
        totals = sum_splits(b2c_groups[state])
        b2c_rows.append(B2CRow(
            state=state,
            invoice_count=len(b2c_groups[state]),
            taxable_value=totals.taxable_value,
            cgst=totals.cgst,
            sgst=totals.sgst,
            igst=totals.igst,
            total_value=totals.line_total,
        ))

    outward = OutwardSupplies(taxable_value=taxable, igst=igst, cgst=cgst, sgst=sgst, cess=ZERO)
    itc = InputTaxCredit(igst=ZERO, cgst=ZERO, sgst=ZERO, cess=ZERO)
    net = NetTaxLiability(
        igst=outward.igst - itc.igst,
        cgst=outward.cgst - itc.cgst,
        sgst=outward.sgst - itc.sgst,
        cess=outward.cess - itc.cess,
        total=(outward.igst + outward.cgst + outward.sgst + outward.cess)
        - (itc.igst + itc.cgst + itc.sgst + itc.cess),
        itc_applied=False,
    )

    return PeriodReportSummary(
        month=month,
        year=year,
        total_invoices=len(in_period),
        total_tax=cgst + sgst + igst,
        b2b=b2b_rows,
        b2c=b2c_rows,
        outward_supplies=outward,
        itc=itc,
        net_tax_liability=net,
    )


# ==================== PORTAL EXPORTS ====================

def return_period(month: int, year: int) -> str:
    """Return period in the portal's MMYYYY form"""
    return f"{month:02d}{year}"


def _effective_rate(taxable: Decimal, cgst: Decimal, sgst: Decimal, igst: Decimal) -> Decimal:
    if not taxable:
        return ZERO
    tax = igst if igst > 0 else cgst + sgst
    return round_money(tax / taxable * 100)


def to_gstr1_json(report: PeriodReportSummary, gstin: str,
                  large_invoice_limit: Decimal = Decimal("250000")) -> dict:
    """Map the summary onto the GSTR-1 upload layout"""
    b2b = []
    for row in report.b2b:
        b2b.append({
            "ctin": row.customer_gstin,
            "inv": [{
                "inum": row.invoice_number,
                "idt": row.invoice_date.strftime("%d-%m-%Y"),
                "val": float(row.total_value),
                "pos": row.place_of_supply.split("-")[0],
                "rchrg": "N",
                "inv_typ": "R",
                "itms": [{
                    "num": 1,
                    "itm_det": {
                        "txval": float(row.taxable_value),
                        "rt": float(_effective_rate(row.taxable_value, row.cgst, row.sgst, row.igst)),
                        "iamt": float(row.igst),
                        "camt": float(row.cgst),
                        "samt": float(row.sgst),
                        "csamt": 0
                    }
                }]
            }]
        })

    b2cl = []
    b2cs = []
    for row in report.b2c:
        rate = float(_effective_rate(row.taxable_value, row.cgst, row.sgst, row.igst))
        if row.total_value > large_invoice_limit:
            b2cl.append({
                "pos": row.state,
                "inv": [{
                    "inum": "Consolidated",
                    "val": float(row.total_value),
                    "itms": [{
                        "num": 1,
                        "itm_det": {
                            "txval": float(row.taxable_value),
                            "rt": rate,
                            "iamt": float(row.igst),
                            "csamt": 0
                        }
                    }]
                }]
            })
        else:
            b2cs.append({
                "pos": row.state,
                "typ": "OE",
                "txval": float(row.taxable_value),
                "rt": rate,
                "iamt": float(row.igst),
                "camt": float(row.cgst),
                "samt": float(row.sgst),
                "csamt": 0
            })

    return {
        "gstin": gstin,
        "fp": return_period(report.month, report.year),
        "gt": float(report.total_tax),
        "cur_gt": float(report.total_tax),
        "b2b": b2b,
        "b2cl": b2cl,
        "b2cs": b2cs,
    }


def to_gstr3b_json(report: PeriodReportSummary, gstin: str) -> dict:
    """Map the summary onto the GSTR-3B upload layout"""
    outward = report.outward_supplies
    itc = report.itc
    net = report.net_tax_liability
    return {
        "gstin": gstin,
        "ret_period": return_period(report.month, report.year),
        "sup_details": {
            "osup_det": {
                "txval": float(outward.taxable_value),
                "iamt": float(outward.igst),
                "camt": float(outward.cgst),
                "samt": float(outward.sgst),
                "csamt": float(outward.cess)
            }
        },
        "itc_elg": {
            "itc_avl": [{
                "ty": "OTH",
                "iamt": float(itc.igst),
                "camt": float(itc.cgst),
                "samt": float(itc.sgst),
                "csamt": float(itc.cess)
            }]
        },
        "intr_details": {
            "intr_det": {
                "iamt": float(net.igst),
                "camt": float(net.cgst),
                "samt": float(net.sgst),
                "csamt": float(net.cess)
            }
        }
    }


def export_period_report_excel(report: PeriodReportSummary) -> bytes:
    """Render the summary as a workbook with B2B, B2C and Summary sheets"""
    wb = openpyxl.Workbook()

    # Styles
    header_font = Font(bold=True, size=14)
    title_font = Font(bold=True, size=12)
    currency_format = '#,##0.00'
    header_fill = PatternFill(start_color="4F81BD", end_color="4F81BD", fill_type="solid")
    header_font_white = Font(bold=True, color="FFFFFF")
    thin_border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    def write_table(ws, start_row: int, headers: List[str], rows: List[list], money_from: int):
        for col, header in enumerate(headers, 1):
            cell = ws.cell(row=start_row, column=col, value=header)
            cell.font = header_font_white
            cell.fill = header_fill
            cell.border = thin_border
            cell.alignment = Alignment(horizontal='center')
        for row_idx, values in enumerate(rows, start_row + 1):
            for col, value in enumerate(values, 1):
                cell = ws.cell(row=row_idx, column=col, value=value)
                cell.border = thin_border
                if col >= money_from:
                    cell.number_format = currency_format
        for col in range(1, len(headers) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 18

    period_label = f"{calendar.month_name[report.month]} {report.year}"

    # Summary
    ws = wb.active
    ws.title = "Summary"
    ws['A1'] = "GST Period Report"
    ws['A1'].font = header_font
    ws.merge_cells('A1:F1')
    ws['A2'] = f"Period: {period_label}"
    ws.merge_cells('A2:F2')
    ws['A4'] = "Outward Supplies"
    ws['A4'].font = title_font

    outward = report.outward_supplies
    net = report.net_tax_liability
    write_table(
        ws, 5,
        ["", "Taxable Value", "IGST", "CGST", "SGST", "Cess"],
        [
            ["Outward supplies", float(outward.taxable_value), float(outward.igst),
             float(outward.cgst), float(outward.sgst), float(outward.cess)],
            ["Input tax credit", None, float(report.itc.igst), float(report.itc.cgst),
             float(report.itc.sgst), float(report.itc.cess)],
            ["Net tax liability", None, float(net.igst), float(net.cgst),
             float(net.sgst), float(net.cess)],
        ],
        money_from=2
    )
    ws['A10'] = "Total liability (before ITC):"
    ws['B10'] = float(net.total)
    ws['B10'].number_format = currency_format

    # B2B
    ws = wb.create_sheet("B2B")
    write_table(
        ws, 1,
        ["Invoice #", "Date", "Customer", "GSTIN", "Place of Supply",
         "Taxable Value", "CGST", "SGST", "IGST", "Total"],
        [
            [row.invoice_number, row.invoice_date.isoformat(), row.customer_name,
             row.customer_gstin, row.place_of_supply, float(row.taxable_value),
             float(row.cgst), float(row.sgst), float(row.igst), float(row.total_value)]
            for row in report.b2b
        ],
        money_from=6
    )

    # B2C
    ws = wb.create_sheet("B2C")
    write_table(
        ws, 1,
        ["State", "Invoices", "Taxable Value", "CGST", "SGST", "IGST", "Total"],
        [
            [row.state, row.invoice_count, float(row.taxable_value), float(row.cgst),
             float(row.sgst), float(row.igst), float(row.total_value)]
            for row in report.b2c
        ],
        money_from=3
    )

    output = BytesIO()
    wb.save(output)
    return output.getvalue()


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def period_report(self, month: int, year: int) -> PeriodReportSummary:
        """Load the month's invoices and aggregate them"""
        from ledgerbook.services.sales_service import SalesService

        start, end = period_bounds(month, year)
        invoices = self.db.query(SalesInvoice).options(
            joinedload(SalesInvoice.items),
            joinedload(SalesInvoice.customer)
        ).filter(
            SalesInvoice.invoice_date >= start,
            SalesInvoice.invoice_date <= end,
            SalesInvoice.status != InvoiceStatus.CANCELLED.value
        ).order_by(SalesInvoice.invoice_date, SalesInvoice.invoice_number).all()

        records = [SalesService.to_tax_record(invoice) for invoice in invoices]
        return build_period_report(records, month, year)
