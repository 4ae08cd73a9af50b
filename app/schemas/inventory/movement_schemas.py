from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime

from app.constants.movement_type import MovementType


class MovementCreate(BaseModel):
    item_id: int
    warehouse_id: int
    type: MovementType
    qty: Optional[int] = None   # IN / OUT
    to: Optional[int] = None    # ADJUST
    note: Optional[str] = Field(None, max_length=500)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=128)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class TransferCreate(BaseModel):
    item_id: int
    from_warehouse_id: int
    to_warehouse_id: int
    qty: int
    note: Optional[str] = Field(None, max_length=500)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=128)

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class MovementOut(BaseModel):
    id: int
    item_id: int
    warehouse_id: int
    movement_type: MovementType
    quantity: int
    target_quantity: Optional[int]
    note: Optional[str]
    transfer_id: Optional[str]
    created_by: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class MovementListData(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[MovementOut]


class TransferResult(BaseModel):
    transfer_id: str
    item_id: int
    from_warehouse_id: int
    to_warehouse_id: int
    quantity: int
    out_movement: MovementOut
    in_movement: MovementOut
