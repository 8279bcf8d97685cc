"""
Account ledger: credits, debits, transfers, reversals and balance integrity.
"""
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from ledgerbook.core.exceptions import (
    InvalidAmount, AccountNotFound, SameAccountTransfer, InsufficientFunds,
    AccountInUse, ImmutableRecord, TransactionNotFound, TransferAtomicityFailure, LedgerError
)
from ledgerbook.models import Account, AccountTransaction
from ledgerbook.schemas import AccountCreate
from ledgerbook.services.account_service import AccountService


class TestCreditDebit:
    def test_credit_then_debit(self, accounts, make_account):
        account = make_account()
        accounts.credit(account.id, Decimal("500"), "Opening sale")
        accounts.debit(account.id, Decimal("200"), "Rent")
        assert accounts.get_balance(account.id) == Decimal("300")

    def test_credit_records_transaction(self, accounts, make_account):
        account = make_account()
        tx = accounts.credit(account.id, Decimal("75.50"), "Sale", "invoice", 12)
        assert tx.kind == "credit"
        assert tx.amount == Decimal("75.50")
        assert tx.reference_type == "invoice"
        assert tx.reference_id == "12"
        assert tx.counterparty_account_id is None

    def test_debit_may_take_balance_negative(self, accounts, make_account):
        account = make_account()
        accounts.debit(account.id, Decimal("40"), "Petty cash")
        assert accounts.get_balance(account.id) == Decimal("-40")

    def test_opening_balance_counts_toward_balance(self, accounts, make_account):
        account = make_account(opening_balance="1000")
        accounts.debit(account.id, Decimal("250"), "Supplies")
        assert accounts.get_balance(account.id) == Decimal("750")
        assert accounts.verify_balance(account.id)

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), None, "abc", Decimal("NaN")])
    def test_rejects_non_positive_or_malformed_amounts(self, db, accounts, make_account, amount):
        account = make_account()
        with pytest.raises(InvalidAmount) as exc:
            accounts.credit(account.id, amount, "Bad")
        assert exc.value.field == "amount"
        assert db.query(AccountTransaction).count() == 0
        assert accounts.get_balance(account.id) == Decimal("0")

    def test_unknown_account(self, accounts):
        with pytest.raises(AccountNotFound):
            accounts.debit(999, Decimal("10"), "Nowhere")

    def test_recomputed_balance_matches_cache(self, accounts, make_account):
        account = make_account(opening_balance="100")
        for amount in ("10.10", "20.20", "30.30"):
            accounts.credit(account.id, Decimal(amount), "In")
        accounts.debit(account.id, Decimal("0.60"), "Out")
        assert accounts.recompute_balance(account.id) == Decimal("160.00")
        assert accounts.get_balance(account.id) == Decimal("160.00")


class TestTransfer:
    def test_moves_money_between_accounts(self, accounts, make_account):
        a = make_account("Cash")
        b = make_account("Bank", kind="bank", bank_name="HDFC")
        accounts.credit(a.id, Decimal("300"), "Float")

        debit_leg, credit_leg = accounts.transfer(a.id, b.id, Decimal("150"))

        assert accounts.get_balance(a.id) == Decimal("150")
        assert accounts.get_balance(b.id) == Decimal("150")
        assert debit_leg.kind == "debit" and debit_leg.account_id == a.id
        assert credit_leg.kind == "credit" and credit_leg.account_id == b.id
        assert debit_leg.counterparty_account_id == b.id
        assert credit_leg.counterparty_account_id == a.id
        assert debit_leg.reference_type == credit_leg.reference_type == "transfer"
        assert debit_leg.created_at == credit_leg.created_at

    def test_default_descriptions_name_the_other_account(self, accounts, make_account):
        a = make_account("Cash")
        b = make_account("Bank")
        debit_leg, credit_leg = accounts.transfer(a.id, b.id, Decimal("10"))
        assert debit_leg.description == "Transfer to Bank"
        assert credit_leg.description == "Transfer from Cash"

    def test_same_account_is_rejected(self, db, accounts, make_account):
        a = make_account()
        with pytest.raises(SameAccountTransfer):
            accounts.transfer(a.id, a.id, Decimal("10"))
        assert db.query(AccountTransaction).count() == 0

    def test_missing_destination_writes_nothing(self, db, accounts, make_account):
        a = make_account()
        accounts.credit(a.id, Decimal("50"), "Float")
        with pytest.raises(AccountNotFound) as exc:
            accounts.transfer(a.id, 404, Decimal("10"))
        assert exc.value.field == "to_account_id"
        assert accounts.get_balance(a.id) == Decimal("50")
        assert db.query(AccountTransaction).count() == 1

    def test_overdraft_allowed_by_default(self, accounts, make_account):
        a = make_account("Cash")
        b = make_account("Bank")
        accounts.transfer(a.id, b.id, Decimal("25"))
        assert accounts.get_balance(a.id) == Decimal("-25")

    def test_overdraft_can_be_refused(self, db, make_account):
        a = make_account("Cash")
        b = make_account("Bank")
        strict = AccountService(db, allow_transfer_overdraft=False)
        strict.credit(a.id, Decimal("20"), "Float")
        with pytest.raises(InsufficientFunds):
            strict.transfer(a.id, b.id, Decimal("25"))
        assert strict.get_balance(a.id) == Decimal("20")
        assert strict.get_balance(b.id) == Decimal("0")

    def test_failure_after_first_leg_rolls_back_both(self, db, accounts, make_account, monkeypatch):
        a = make_account("Cash")
        b = make_account("Bank")
        accounts.credit(a.id, Decimal("300"), "Float")

        original_post = AccountService._post
        calls = {"count": 0}

        def failing_post(self, *args, **kwargs):
            calls["count"] += 1
            if calls["count"] == 2:
                raise SQLAlchemyError("disk I/O error")
            return original_post(self, *args, **kwargs)

        monkeypatch.setattr(AccountService, "_post", failing_post)

        with pytest.raises(TransferAtomicityFailure):
            accounts.transfer(a.id, b.id, Decimal("150"))

        assert calls["count"] == 2
        assert accounts.get_balance(a.id) == Decimal("300")
        assert accounts.get_balance(b.id) == Decimal("0")
        assert db.query(AccountTransaction).filter(
            AccountTransaction.reference_type == "transfer"
        ).count() == 0


class TestReversal:
    def test_reversal_offsets_original(self, accounts, make_account):
        a = make_account()
        tx = accounts.credit(a.id, Decimal("80"), "Mistake")
        reversal = accounts.reverse_transaction(tx.id)
        assert reversal.kind == "debit"
        assert reversal.reference_type == "reversal"
        assert reversal.reference_id == str(tx.id)
        assert accounts.get_balance(a.id) == Decimal("0")
        assert accounts.verify_balance(a.id)

    def test_cannot_reverse_twice(self, accounts, make_account):
        a = make_account()
        tx = accounts.debit(a.id, Decimal("80"), "Mistake")
        accounts.reverse_transaction(tx.id)
        with pytest.raises(LedgerError, match="already been reversed"):
            accounts.reverse_transaction(tx.id)

    def test_transfer_leg_cannot_be_reversed_alone(self, accounts, make_account):
        a = make_account("Cash")
        b = make_account("Bank")
        debit_leg, _ = accounts.transfer(a.id, b.id, Decimal("10"))
        with pytest.raises(LedgerError, match="transfer leg"):
            accounts.reverse_transaction(debit_leg.id)

    @pytest.mark.parametrize("reference_type", ["invoice", "invoice_cancellation"])
    def test_invoice_entries_cannot_be_reversed_alone(self, accounts, make_account, reference_type):
        a = make_account()
        tx = accounts.credit(a.id, Decimal("118"), "Payment", reference_type, 7)
        with pytest.raises(LedgerError, match="cancel the invoice"):
            accounts.reverse_transaction(tx.id)
        assert accounts.get_balance(a.id) == Decimal("118")

    def test_unknown_transaction(self, accounts):
        with pytest.raises(TransactionNotFound):
            accounts.reverse_transaction(12345)


class TestImmutability:
    def test_recorded_transaction_cannot_be_edited(self, db, accounts, make_account):
        a = make_account()
        tx = accounts.credit(a.id, Decimal("10"), "Original")
        tx.amount = Decimal("999")
        with pytest.raises(ImmutableRecord):
            db.flush()
        db.rollback()


class TestAccounts:
    def test_first_account_becomes_default(self, accounts, make_account):
        first = make_account("Cash")
        second = make_account("Bank")
        assert first.is_default is True
        assert second.is_default is False
        assert accounts.get_default().id == first.id

    def test_set_default_moves_flag(self, db, accounts, make_account):
        first = make_account("Cash")
        second = make_account("Bank")
        accounts.set_default(second.id)
        db.expire_all()
        assert accounts.get_by_id(first.id).is_default is False
        assert accounts.get_by_id(second.id).is_default is True

    def test_cash_account_drops_bank_fields(self, accounts):
        account = accounts.create(AccountCreate(name="Till", kind="cash", bank_name="SBI"))
        assert account.bank_name is None

    def test_delete_empty_account(self, db, accounts, make_account):
        make_account("Cash")
        spare = make_account("Spare")
        assert accounts.delete(spare.id) is True
        assert db.query(Account).count() == 1

    def test_delete_refused_with_balance(self, accounts, make_account):
        a = make_account(opening_balance="10")
        with pytest.raises(AccountInUse):
            accounts.delete(a.id)

    def test_delete_refused_with_history(self, accounts, make_account):
        a = make_account()
        accounts.credit(a.id, Decimal("10"), "In")
        accounts.debit(a.id, Decimal("10"), "Out")
        with pytest.raises(AccountInUse):
            accounts.delete(a.id)

    def test_deleting_default_promotes_next(self, accounts, make_account):
        first = make_account("Cash")
        second = make_account("Bank")
        accounts.delete(first.id)
        assert accounts.get_default().id == second.id


class TestHistory:
    def test_transactions_newest_first(self, accounts, make_account):
        a = make_account()
        first = accounts.credit(a.id, Decimal("1"), "First")
        second = accounts.credit(a.id, Decimal("2"), "Second")
        history = accounts.get_transactions(a.id)
        assert [tx.id for tx in history] == [second.id, first.id]
