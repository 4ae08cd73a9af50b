from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.utils.check_roles import require_role, ADMIN_ROLES, READ_ROLES
from app.utils.response import success_response, APIResponse
from app.services.inventory.transfer_service import create_transfer, get_transfer
from app.schemas.inventory.movement_schemas import TransferCreate, TransferResult

router = APIRouter(
    prefix="/inventory/transfers",
    tags=["Stock Transfers"],
)


@router.post("", response_model=APIResponse[TransferResult], status_code=201)
async def create_transfer_api(
    payload: TransferCreate,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(ADMIN_ROLES)),
):
    result = await create_transfer(db, payload, actor)
    return success_response("Stock transferred successfully", result)


@router.get("/{transfer_id}", response_model=APIResponse[TransferResult])
async def get_transfer_api(
    transfer_id: str,
    db: AsyncSession = Depends(get_db),
    actor=Depends(require_role(READ_ROLES)),
):
    return success_response("Transfer fetched successfully", await get_transfer(db, transfer_id))
