from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime


class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=160)
    category: Optional[str] = Field(None, max_length=120)
    unit: Optional[str] = Field(None, max_length=32)
    min_stock: int = Field(0, ge=0)
    is_active: bool = True

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=160)
    category: Optional[str] = Field(None, max_length=120)
    unit: Optional[str] = Field(None, max_length=32)
    min_stock: Optional[int] = Field(None, ge=0)
    version: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ItemOut(BaseModel):
    id: int
    name: str
    category: Optional[str]
    unit: Optional[str]
    min_stock: int
    is_active: bool
    version: int

    created_at: datetime
    updated_at: Optional[datetime]

    created_by: Optional[str]
    updated_by: Optional[str]

    class Config:
        from_attributes = True


class ItemListData(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[ItemOut]
