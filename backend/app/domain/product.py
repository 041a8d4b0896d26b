"""
Product Domain Model

Represents a stock item sold at the POS and optionally listed in the
public catalogue.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Product(BaseModel):
    """
    Product domain model - matches the products table

    Fields:
        id: Product ID (uuid)
        user_id: Owning business
        name: Product name
        sku: Stock Keeping Unit (optional)
        barcode: EAN/UPC scanned at the POS (optional)
        unit_price: Selling price in KES
        cost_price: Purchase price in KES
        quantity: Units in stock
        minimum_stock: Low stock alert threshold (optional)

        # Public catalogue
        is_public: Listed on the public catalogue page
        show_price: Whether the catalogue shows the price
        public_description: Description shown publicly instead of the internal one
    """

    id: str = Field(..., description="Product ID")
    user_id: str = Field(..., description="Owning business user id")
    name: str = Field(..., description="Product name")
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None

    unit_price: Decimal = Field(Decimal("0"), ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)

    quantity: int = Field(0, description="Units in stock")
    minimum_stock: Optional[int] = Field(None, ge=0)

    is_public: bool = False
    show_price: bool = True
    public_description: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_low_stock(self) -> bool:
        """Only products with a minimum set can be low on stock"""
        return bool(self.minimum_stock) and self.quantity <= self.minimum_stock

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity <= 0

    def to_dict(self) -> dict:
        """
        Convert to dictionary with computed fields

        Returns dict with all fields plus computed properties
        """
        data = self.model_dump()
        data["is_low_stock"] = self.is_low_stock
        data["is_out_of_stock"] = self.is_out_of_stock
        data["unit_price"] = float(self.unit_price)
        if data.get("cost_price") is not None:
            data["cost_price"] = float(data["cost_price"])
        return data

    def to_public_dict(self) -> dict:
        """Catalogue view: no cost price, no stock counts beyond in/out"""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.public_description or self.description,
            "category": self.category,
            "image_url": self.image_url,
            "unit_price": float(self.unit_price) if self.show_price else None,
            "show_price": self.show_price,
            "in_stock": self.quantity > 0,
        }


class ProductCreate(BaseModel):
    """Schema for creating a new product"""
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    unit_price: Decimal = Field(..., ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    quantity: int = Field(0, ge=0)
    minimum_stock: Optional[int] = Field(5, ge=0)
    is_public: bool = False
    show_price: bool = True
    public_description: Optional[str] = None


class ProductUpdate(BaseModel):
    """Schema for updating an existing product"""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    unit_price: Optional[Decimal] = Field(None, ge=0)
    cost_price: Optional[Decimal] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    minimum_stock: Optional[int] = Field(None, ge=0)
    is_public: Optional[bool] = None
    show_price: Optional[bool] = None
    public_description: Optional[str] = None


class ProductImage(BaseModel):
    """Gallery image attached to a product (product_images table)"""
    id: str
    product_id: str
    image_url: str
    alt_text: Optional[str] = None
    is_primary: bool = False
    sort_order: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class GenerateImageRequest(BaseModel):
    product_name: str = Field(..., min_length=1)
    category: Optional[str] = None
    description: Optional[str] = None
    product_id: Optional[str] = Field(None, description="Attach the generated image to this product")
