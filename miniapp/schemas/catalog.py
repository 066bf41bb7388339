"""
Catalog editing request/response schemas
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

from ..models.catalog import Amount


class ProductDraft(BaseModel):
    """Product create request, the id is assigned on creation"""
    name: str = Field(..., description="Product name")
    description: str = Field("", description="Description")
    base_price: Amount = Field(..., description="Price per unit")
    emoji: str = Field("", description="Emoji")
    image: str = Field("", description="Image URL")
    video: Optional[str] = Field(None, description="Video URL")
    category: str = Field(..., description="Category id")
    is_new: bool = Field(False, description="New product badge")
    is_promo: bool = Field(False, description="Promotion badge")
    custom_prices: Optional[Dict[str, Any]] = Field(None, description="Tier prices by quantity")


class ProductUpdate(BaseModel):
    """Product update request, unset fields are kept"""
    name: Optional[str] = Field(None, description="Product name")
    description: Optional[str] = Field(None, description="Description")
    base_price: Optional[Amount] = Field(None, description="Price per unit")
    emoji: Optional[str] = Field(None, description="Emoji")
    image: Optional[str] = Field(None, description="Image URL")
    video: Optional[str] = Field(None, description="Video URL")
    category: Optional[str] = Field(None, description="Category id")
    is_new: Optional[bool] = Field(None, description="New product badge")
    is_promo: Optional[bool] = Field(None, description="Promotion badge")
    custom_prices: Optional[Dict[str, Any]] = Field(None, description="Tier prices by quantity")


class CategoryDraft(BaseModel):
    """Category create request"""
    id: str = Field(..., description="Category id")
    name: str = Field(..., description="Display name")
    emoji: str = Field("", description="Emoji")
    description: str = Field("", description="Description")


class CategoryUpdate(BaseModel):
    """Category update request, unset fields are kept"""
    name: Optional[str] = Field(None, description="Display name")
    emoji: Optional[str] = Field(None, description="Emoji")
    description: Optional[str] = Field(None, description="Description")


class ConfigSaveResponse(BaseModel):
    """POST /config response"""
    success: bool = Field(..., description="Request accepted")
    persisted: bool = Field(..., description="Written to durable storage")
    message: str = Field(..., description="Result message")


TierInput = Dict[str, Union[int, float, Dict[str, Union[int, float]]]]
