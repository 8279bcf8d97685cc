"""
Account Service - Cash/Bank Accounts, Credits, Debits, Transfers
"""
from typing import Optional, List, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func, case
from decimal import Decimal
from datetime import date, datetime
import logging

from ledgerbook.core.exceptions import (
    InvalidAmount, AccountNotFound, SameAccountTransfer, InsufficientFunds,
    AccountInUse, TransactionNotFound, TransferAtomicityFailure, LedgerError
)
from ledgerbook.models import Account, AccountTransaction, AccountKind, TransactionKind
from ledgerbook.schemas import AccountCreate

logger = logging.getLogger(__name__)

TRANSFER = "transfer"
REVERSAL = "reversal"
INVOICE = "invoice"
INVOICE_CANCELLATION = "invoice_cancellation"


class AccountService:
    def __init__(self, db: Session, allow_transfer_overdraft: bool = True):
        self.db = db
        self.allow_transfer_overdraft = allow_transfer_overdraft

    # ==================== ACCOUNTS ====================

    def get_by_id(self, account_id: int) -> Optional[Account]:
        return self.db.query(Account).filter(Account.id == account_id).first()

    def get_all(self) -> List[Account]:
        return self.db.query(Account).order_by(Account.name).all()

    def get_default(self) -> Optional[Account]:
        return self.db.query(Account).filter(Account.is_default == True).first()

    def _get_or_raise(self, account_id: int, field: str = "account_id", for_update: bool = False) -> Account:
        query = self.db.query(Account).filter(Account.id == account_id)
        if for_update:
            query = query.with_for_update()
        account = query.first()
        if not account:
            raise AccountNotFound(f"Account {account_id} not found", field=field)
        return account

    def create(self, account_data: AccountCreate) -> Account:
        opening_balance = account_data.opening_balance or Decimal("0")
        kind = AccountKind(account_data.kind.value)

        # The first account becomes the default
        is_default = account_data.is_default or self.db.query(Account.id).first() is None

        with self.db.begin_nested():
            if is_default:
                self._clear_default()
            account = Account(
                name=account_data.name,
                kind=kind.value,
                bank_name=account_data.bank_name if kind == AccountKind.BANK else None,
                account_number=account_data.account_number if kind == AccountKind.BANK else None,
                ifsc_code=account_data.ifsc_code if kind == AccountKind.BANK else None,
                opening_balance=opening_balance,
                current_balance=opening_balance,
                is_default=is_default
            )
            self.db.add(account)
            self.db.flush()

        return account

    def _clear_default(self) -> None:
        self.db.query(Account).filter(Account.is_default == True).update(
            {Account.is_default: False}, synchronize_session="fetch"
        )

    def set_default(self, account_id: int) -> Account:
        account = self._get_or_raise(account_id)
        with self.db.begin_nested():
            self._clear_default()
            account.is_default = True
            self.db.flush()
        return account

    def delete(self, account_id: int) -> bool:
        """Delete an account that holds no money and has no history"""
        account = self._get_or_raise(account_id)

        if account.current_balance != 0:
            raise AccountInUse(
                f"Account '{account.name}' has a non-zero balance of {account.current_balance}",
                field="current_balance"
            )

        has_transactions = self.db.query(AccountTransaction.id).filter(
            (AccountTransaction.account_id == account_id) |
            (AccountTransaction.counterparty_account_id == account_id)
        ).first()
        if has_transactions:
            raise AccountInUse(
                f"Account '{account.name}' is referenced by recorded transactions",
                field="account_id"
            )

        was_default = account.is_default
        self.db.delete(account)
        self.db.flush()

        if was_default:
            successor = self.db.query(Account).order_by(Account.id).first()
            if successor:
                successor.is_default = True
                self.db.flush()
        return True

    # ==================== ENTRIES ====================

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        if amount is None:
            raise InvalidAmount("Amount is required", field="amount")
        try:
            amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except ArithmeticError:
            raise InvalidAmount(f"Amount must be a number, got {amount!r}", field="amount")
        if not amount.is_finite() or amount <= 0:
            raise InvalidAmount(f"Amount must be greater than zero, got {amount}", field="amount")
        return amount

    def _post(self, account: Account, kind: TransactionKind, amount: Decimal, description: Optional[str],
              reference_type: Optional[str], reference_id: Optional[str], transaction_date: date,
              counterparty_account_id: Optional[int] = None,
              created_at: Optional[datetime] = None) -> AccountTransaction:
        """Append one transaction and move the cached balance with it"""
        transaction = AccountTransaction(
            account_id=account.id,
            kind=kind.value,
            amount=amount,
            description=description,
            transaction_date=transaction_date,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            counterparty_account_id=counterparty_account_id,
            created_at=created_at or datetime.utcnow()
        )
        self.db.add(transaction)

        if kind == TransactionKind.CREDIT:
            account.current_balance = account.current_balance + amount
        else:
            account.current_balance = account.current_balance - amount

        self.db.flush()
        return transaction

    def _record(self, kind: TransactionKind, account_id: int, amount, description: Optional[str],
                reference_type: Optional[str], reference_id: Optional[str],
                transaction_date: Optional[date]) -> AccountTransaction:
        amount = self._validate_amount(amount)
        with self.db.begin_nested():
            account = self._get_or_raise(account_id, for_update=True)
            return self._post(
                account, kind, amount, description, reference_type, reference_id,
                transaction_date or date.today()
            )

    def credit(self, account_id: int, amount: Decimal, description: str = None,
               reference_type: str = None, reference_id: str = None,
               transaction_date: date = None) -> AccountTransaction:
        """Money in: increases the balance"""
        return self._record(TransactionKind.CREDIT, account_id, amount, description,
                            reference_type, reference_id, transaction_date)

    def debit(self, account_id: int, amount: Decimal, description: str = None,
              reference_type: str = None, reference_id: str = None,
              transaction_date: date = None) -> AccountTransaction:
        """Money out: decreases the balance. Negative balances are allowed."""
        return self._record(TransactionKind.DEBIT, account_id, amount, description,
                            reference_type, reference_id, transaction_date)

    def transfer(self, from_account_id: int, to_account_id: int, amount: Decimal,
                 description: str = None,
                 transaction_date: date = None) -> Tuple[AccountTransaction, AccountTransaction]:
        """
        Move money between two accounts as a debit/credit pair.

        Both rows are locked in id order and both legs are written inside one
        savepoint; if anything fails after the first leg the savepoint is
        rolled back and TransferAtomicityFailure is raised.
        """
        amount = self._validate_amount(amount)
        if from_account_id == to_account_id:
            raise SameAccountTransfer("Cannot transfer funds to the same account", field="to_account_id")

        transfer_date = transaction_date or date.today()
        created_at = datetime.utcnow()

        savepoint = self.db.begin_nested()
        try:
            locked = {}
            for account_id in sorted((from_account_id, to_account_id)):
                field = "from_account_id" if account_id == from_account_id else "to_account_id"
                locked[account_id] = self._get_or_raise(account_id, field=field, for_update=True)
            source, destination = locked[from_account_id], locked[to_account_id]

            if not self.allow_transfer_overdraft and source.current_balance < amount:
                raise InsufficientFunds(
                    f"Insufficient funds in '{source.name}'. Available: {source.current_balance:.2f}",
                    field="amount"
                )

            debit_leg = self._post(
                source, TransactionKind.DEBIT, amount,
                description or f"Transfer to {destination.name}",
                TRANSFER, None, transfer_date,
                counterparty_account_id=destination.id, created_at=created_at
            )
            credit_leg = self._post(
                destination, TransactionKind.CREDIT, amount,
                description or f"Transfer from {source.name}",
                TRANSFER, None, transfer_date,
                counterparty_account_id=source.id, created_at=created_at
            )
            savepoint.commit()
        except LedgerError:
            savepoint.rollback()
            raise
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.error(f"Transfer {from_account_id} -> {to_account_id} rolled back: {e}")
            raise TransferAtomicityFailure(
                f"Transfer could not be completed and was rolled back: {e}"
            ) from e

        logger.info(
            f"Transferred {amount} from account {from_account_id} to account {to_account_id} "
            f"(transactions {debit_leg.id}/{credit_leg.id})"
        )
        return debit_leg, credit_leg

    def reverse_transaction(self, transaction_id: int, description: str = None) -> AccountTransaction:
        """Offset a recorded credit or debit with an entry of the opposite kind"""
        original = self.db.query(AccountTransaction).filter(
            AccountTransaction.id == transaction_id
        ).first()
        if not original:
            raise TransactionNotFound(f"Transaction {transaction_id} not found", field="transaction_id")

        if original.reference_type == TRANSFER:
            raise LedgerError(
                "A transfer leg cannot be reversed on its own; record a transfer in the opposite direction",
                field="transaction_id"
            )
        if original.reference_type in (INVOICE, INVOICE_CANCELLATION):
            raise LedgerError(
                f"Transaction {transaction_id} belongs to invoice {original.reference_id}; cancel the invoice instead",
                field="transaction_id"
            )

        already_reversed = self.db.query(AccountTransaction.id).filter(
            AccountTransaction.reference_type == REVERSAL,
            AccountTransaction.reference_id == str(original.id)
        ).first()
        if already_reversed:
            raise LedgerError(f"Transaction {transaction_id} has already been reversed", field="transaction_id")

        opposite = TransactionKind.DEBIT if original.kind == TransactionKind.CREDIT.value else TransactionKind.CREDIT
        reversal = self._record(
            opposite, original.account_id, original.amount,
            description or f"Reversal of transaction {original.id}",
            REVERSAL, str(original.id), None
        )
        logger.info(f"Reversed transaction {original.id} with {reversal.id}")
        return reversal

    # ==================== BALANCES ====================

    def get_balance(self, account_id: int) -> Decimal:
        return self._get_or_raise(account_id).current_balance

    def recompute_balance(self, account_id: int) -> Decimal:
        """Opening balance plus the signed sum of the transaction log"""
        account = self._get_or_raise(account_id)
        signed_total = self.db.query(
            func.sum(
                case(
                    (AccountTransaction.kind == TransactionKind.CREDIT.value, AccountTransaction.amount),
                    else_=-AccountTransaction.amount
                )
            )
        ).filter(
            AccountTransaction.account_id == account_id
        ).scalar() or Decimal("0")
        return Decimal(account.opening_balance) + Decimal(signed_total)

    def verify_balance(self, account_id: int) -> bool:
        return self.get_balance(account_id) == self.recompute_balance(account_id)

    def get_transactions(self, account_id: int, start_date: date = None,
                         end_date: date = None) -> List[AccountTransaction]:
        self._get_or_raise(account_id)
        query = self.db.query(AccountTransaction).filter(
            AccountTransaction.account_id == account_id
        )
        if start_date:
            query = query.filter(AccountTransaction.transaction_date >= start_date)
        if end_date:
            query = query.filter(AccountTransaction.transaction_date <= end_date)
        return query.order_by(
            AccountTransaction.transaction_date.desc(), AccountTransaction.id.desc()
        ).all()
