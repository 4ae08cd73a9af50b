from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime

from app.schemas.inventory.movement_schemas import MovementOut


class WarehouseCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=240)
    is_active: bool = True
    is_primary: bool = False

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class WarehouseUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=32)
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=240)
    is_primary: Optional[bool] = None
    version: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class WarehousePurge(BaseModel):
    target_warehouse_id: Optional[int] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class WarehouseOut(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str]
    is_active: bool
    is_primary: bool
    version: int

    created_at: datetime
    updated_at: Optional[datetime]

    created_by: Optional[str]
    updated_by: Optional[str]

    class Config:
        from_attributes = True


class WarehouseListData(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[WarehouseOut]


class WarehouseRetirementResult(BaseModel):
    removed_warehouse_id: int
    removed_code: str
    target: WarehouseOut
    moved: int
    reconciliations: List[MovementOut]
