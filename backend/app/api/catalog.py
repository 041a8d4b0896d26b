"""
Public Catalogue API
Products businesses chose to list publicly (no authentication)
"""
from typing import Optional

from fastapi import APIRouter, Query

from app.repositories import ProductRepository

router = APIRouter()


@router.get("/products")
async def list_public_products(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    products = ProductRepository().find_public(category=category, search=search)
    return {
        "status": "success",
        "count": len(products),
        "data": [product.to_public_dict() for product in products],
    }
