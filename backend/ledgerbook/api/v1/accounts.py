"""
Accounts API Routes - Cash/Bank Accounts, Transactions, Transfers
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from ledgerbook.core.config import settings
from ledgerbook.core.database import get_db
from ledgerbook.schemas import (
    AccountCreate, AccountResponse, AccountEntryRequest, TransactionResponse,
    TransferCreate, TransferResponse, ReversalRequest, BalanceResponse
)
from ledgerbook.services.account_service import AccountService

router = APIRouter(prefix="/accounts", tags=["Accounts"])


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    return AccountService(db, allow_transfer_overdraft=settings.ALLOW_TRANSFER_OVERDRAFT)


# ==================== ACCOUNTS ====================

@router.get("", response_model=List[AccountResponse])
async def list_accounts(service: AccountService = Depends(get_account_service)):
    """List all cash and bank accounts"""
    return service.get_all()


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    account_data: AccountCreate,
    service: AccountService = Depends(get_account_service)
):
    """Create a new cash or bank account"""
    account = service.create(account_data)
    service.db.commit()
    return account


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(account_id: int, service: AccountService = Depends(get_account_service)):
    """Get account by ID"""
    account = service.get_by_id(account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


@router.delete("/{account_id}")
async def delete_account(account_id: int, service: AccountService = Depends(get_account_service)):
    """Delete an account with zero balance and no transactions"""
    service.delete(account_id)
    service.db.commit()
    return {"message": "Account deleted successfully"}


@router.post("/{account_id}/default", response_model=AccountResponse)
async def set_default_account(account_id: int, service: AccountService = Depends(get_account_service)):
    """Mark an account as the default"""
    account = service.set_default(account_id)
    service.db.commit()
    return account


@router.get("/{account_id}/balance", response_model=BalanceResponse)
async def get_account_balance(account_id: int, service: AccountService = Depends(get_account_service)):
    """Cached balance next to the balance recomputed from the transaction log"""
    current = service.get_balance(account_id)
    recomputed = service.recompute_balance(account_id)
    return BalanceResponse(
        account_id=account_id,
        current_balance=current,
        recomputed_balance=recomputed,
        is_consistent=current == recomputed
    )


# ==================== TRANSACTIONS ====================

@router.post("/{account_id}/credit", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def credit_account(
    account_id: int,
    entry: AccountEntryRequest,
    service: AccountService = Depends(get_account_service)
):
    """Record money received into an account"""
    transaction = service.credit(
        account_id, entry.amount, entry.description,
        entry.reference_type, entry.reference_id, entry.transaction_date
    )
    service.db.commit()
    return transaction


@router.post("/{account_id}/debit", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def debit_account(
    account_id: int,
    entry: AccountEntryRequest,
    service: AccountService = Depends(get_account_service)
):
    """Record money paid out of an account"""
    transaction = service.debit(
        account_id, entry.amount, entry.description,
        entry.reference_type, entry.reference_id, entry.transaction_date
    )
    service.db.commit()
    return transaction


@router.get("/{account_id}/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    account_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: AccountService = Depends(get_account_service)
):
    """Transaction history for an account, newest first"""
    return service.get_transactions(account_id, start_date, end_date)


@router.post("/transactions/{transaction_id}/reverse", response_model=TransactionResponse,
             status_code=status.HTTP_201_CREATED)
async def reverse_transaction(
    transaction_id: int,
    request: ReversalRequest,
    service: AccountService = Depends(get_account_service)
):
    """Offset a recorded credit or debit"""
    reversal = service.reverse_transaction(transaction_id, request.description)
    service.db.commit()
    return reversal


# ==================== TRANSFERS ====================

@router.post("/transfers", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
async def create_transfer(
    transfer_data: TransferCreate,
    service: AccountService = Depends(get_account_service)
):
    """Move money between two accounts"""
    debit_leg, credit_leg = service.transfer(
        transfer_data.from_account_id,
        transfer_data.to_account_id,
        transfer_data.amount,
        transfer_data.description,
        transfer_data.transaction_date
    )
    service.db.commit()
    return TransferResponse(
        debit=TransactionResponse.model_validate(debit_leg),
        credit=TransactionResponse.model_validate(credit_leg)
    )
