"""
GST line computation, invoice classification and GSTIN helpers.
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from ledgerbook.core.exceptions import InvalidLineInput
from ledgerbook.schemas import InvoiceLine
from ledgerbook.services.tax_service import (
    B2B, B2C, compute_line_tax, compute_invoice_tax, classify_invoice, is_inter_state,
    validate_gstin, state_code_from_gstin, format_gstin, get_place_of_supply, get_state_name
)


def line(quantity="2", unit_price="100", discount="0", rate="18"):
    return InvoiceLine(
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        discount_percent=Decimal(discount),
        tax_rate_percent=Decimal(rate),
    )


class TestComputeLineTax:
    def test_intra_state_splits_cgst_sgst(self):
        split = compute_line_tax(line(), "29", "29")
        assert split.taxable_value == Decimal("200.00")
        assert split.cgst == Decimal("18.00")
        assert split.sgst == Decimal("18.00")
        assert split.igst == Decimal("0")
        assert split.total_tax == Decimal("36.00")
        assert split.line_total == Decimal("236.00")

    def test_inter_state_charges_igst(self):
        split = compute_line_tax(line(), "29", "07")
        assert split.cgst == Decimal("0")
        assert split.sgst == Decimal("0")
        assert split.igst == Decimal("36.00")
        assert split.line_total == Decimal("236.00")

    @pytest.mark.parametrize("business,customer", [(None, "07"), ("29", None), ("", ""), (None, None)])
    def test_missing_state_is_intra_state(self, business, customer):
        split = compute_line_tax(line(), business, customer)
        assert split.igst == Decimal("0")
        assert split.cgst == split.sgst == Decimal("18.00")

    def test_discount_applies_before_tax(self):
        split = compute_line_tax(line("3", "50", "10", "12"), "29", "29")
        # 150 less 10% = 135, 12% of 135 = 16.20
        assert split.taxable_value == Decimal("135.00")
        assert split.cgst == split.sgst == Decimal("8.10")
        assert split.line_total == Decimal("151.20")

    def test_full_discount_gives_zero(self):
        split = compute_line_tax(line(discount="100"), "29", "29")
        assert split.taxable_value == Decimal("0.00")
        assert split.total_tax == Decimal("0.00")
        assert split.line_total == Decimal("0.00")

    def test_zero_rate(self):
        split = compute_line_tax(line(rate="0"), "29", "07")
        assert split.total_tax == Decimal("0.00")
        assert split.line_total == Decimal("200.00")

    def test_components_always_sum_to_total(self):
        # 5% of 33.33 = 1.6665 rounds to 1.67, half is 0.83325
        split = compute_line_tax(line("1", "33.33", "0", "5"), "29", "29")
        assert split.total_tax == Decimal("1.67")
        assert split.cgst == Decimal("0.83")
        assert split.sgst == Decimal("0.84")
        assert split.cgst + split.sgst + split.igst == split.total_tax
        assert split.taxable_value + split.total_tax == split.line_total

    @pytest.mark.parametrize("unit_price,rate", [("0.50", "10"), ("33.33", "5"), ("0.25", "18"), ("199.99", "28")])
    def test_line_costs_the_same_in_either_jurisdiction(self, unit_price, rate):
        intra = compute_line_tax(line("1", unit_price, "0", rate), "29", "29")
        inter = compute_line_tax(line("1", unit_price, "0", rate), "29", "07")
        assert intra.total_tax == inter.total_tax == inter.igst
        assert intra.line_total == inter.line_total

    def test_odd_cent_tax_is_not_rounded_twice(self):
        # 10% of 0.50 = 0.05, halves of 0.025 must not both round up
        split = compute_line_tax(line("1", "0.50", "0", "10"), "29", "29")
        assert split.total_tax == Decimal("0.05")
        assert split.cgst == Decimal("0.03")
        assert split.sgst == Decimal("0.02")
        assert split.line_total == Decimal("0.55")

    def test_rounds_half_up(self):
        # 18% of 0.25 = 0.045
        split = compute_line_tax(line("1", "0.25", "0", "18"), "29", "07")
        assert split.igst == Decimal("0.05")

    @pytest.mark.parametrize("bad_line,field", [
        (dict(quantity="0"), "quantity"),
        (dict(quantity="-1"), "quantity"),
        (dict(unit_price="-1"), "unit_price"),
        (dict(discount="-1"), "discount_percent"),
        (dict(discount="100.01"), "discount_percent"),
        (dict(rate="-5"), "tax_rate_percent"),
    ])
    def test_rejects_invalid_lines(self, bad_line, field):
        with pytest.raises(InvalidLineInput) as exc:
            compute_line_tax(line(**bad_line), "29", "29")
        assert exc.value.field == field


class TestComputeInvoiceTax:
    def test_rolls_up_lines(self):
        breakdown = compute_invoice_tax(
            [line(), line("1", "100", "50", "5")], "29", "29"
        )
        assert breakdown.sub_total == Decimal("300.00")
        assert breakdown.discount == Decimal("50.00")
        assert breakdown.taxable_value == Decimal("250.00")
        assert breakdown.cgst == Decimal("19.25")
        assert breakdown.sgst == Decimal("19.25")
        assert breakdown.total_tax == Decimal("38.50")
        assert breakdown.grand_total == Decimal("288.50")
        assert breakdown.is_inter_state is False
        assert len(breakdown.lines) == 2


class TestClassifyInvoice:
    def test_gstin_means_b2b(self):
        invoice = SimpleNamespace(customer_gstin="29ABCDE1234F1Z5")
        assert classify_invoice(invoice) == B2B

    @pytest.mark.parametrize("gstin", [None, "", "   "])
    def test_blank_gstin_means_b2c(self, gstin):
        assert classify_invoice(SimpleNamespace(customer_gstin=gstin)) == B2C

    def test_reads_customer_relationship(self):
        invoice = SimpleNamespace(customer=SimpleNamespace(gstin="07ABCDE1234F1Z5"))
        assert classify_invoice(invoice) == B2B

    def test_no_customer_is_b2c(self):
        assert classify_invoice(SimpleNamespace(customer=None)) == B2C


class TestGstin:
    def test_valid_gstin(self):
        assert validate_gstin("29ABCDE1234F1Z5")
        assert validate_gstin(" 29abcde1234f1z5 ")

    @pytest.mark.parametrize("gstin", [None, "", "29ABCDE1234F1Z", "29ABCDE1234F0Z5", "AAABCDE1234F1Z5"])
    def test_invalid_gstin(self, gstin):
        assert not validate_gstin(gstin)

    def test_state_code_from_gstin(self):
        assert state_code_from_gstin("27AAPFU0939F1ZV") == "27"
        assert state_code_from_gstin("not-a-gstin") is None

    def test_format_gstin(self):
        assert format_gstin("27AAPFU0939F1ZV") == "27 AAPFU 0939 F 1Z V"

    def test_place_of_supply(self):
        assert get_state_name("29") == "Karnataka"
        assert get_place_of_supply("07") == "07-Delhi"

    def test_inter_state(self):
        assert is_inter_state("29", "07")
        assert not is_inter_state("29", "29")
        assert not is_inter_state("29", None)
