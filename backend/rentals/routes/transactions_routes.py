"""Financial transaction routes."""
from fastapi import APIRouter, HTTPException, Depends, status
from rentals.access import AccessEngine
from rentals.database import Database
from rentals.models import FinancialTransaction, FinancialTransactionCreate, TokenData
from rentals.auth import require_auth
from rentals.routes.deps import get_access_engine, get_db

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: FinancialTransactionCreate,
    current_user: TokenData = Depends(require_auth),
    store: Database = Depends(get_db),
    engine: AccessEngine = Depends(get_access_engine),
):
    if not engine.can_add_financial_transaction(current_user.user_id):
        raise HTTPException(
            status_code=403,
            detail="Financial transactions are only available with a paid plan. Upgrade to enable this feature.",
        )
    if data.property_id is not None:
        prop = store.get_property(data.property_id)
        if not prop or prop.owner_id != current_user.user_id:
            raise HTTPException(status_code=404, detail="Property not found")
    transaction = FinancialTransaction(
        owner_id=current_user.user_id,
        property_id=data.property_id,
        amount=data.amount,
        description=data.description,
    )
    store.save_transaction(transaction)
    return transaction
