"""
Products API Endpoints
Stock items for the POS, barcode lookup and AI product images
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import AuthUser, get_current_user
from app.core.errors import ResourceNotFoundError
from app.domain.product import GenerateImageRequest, ProductCreate, ProductUpdate
from app.repositories import ProductRepository
from app.services.product_image_service import ProductImageService

router = APIRouter()


def get_product_image_service() -> ProductImageService:
    return ProductImageService()


@router.get("/")
async def get_products(
    category: Optional[str] = Query(None, description="Filter by category"),
    search: Optional[str] = Query(None, description="Search by name, SKU or barcode"),
    low_stock_only: bool = Query(False, description="Only products at or below minimum stock"),
    limit: int = Query(500, ge=1, le=5000),
    offset: int = Query(0, ge=0),
    user: AuthUser = Depends(get_current_user),
):
    products, total = ProductRepository().find_all(
        user.id,
        category=category,
        search=search,
        low_stock_only=low_stock_only,
        limit=limit,
        offset=offset,
    )

    return {
        "status": "success",
        "total": total,
        "limit": limit,
        "offset": offset,
        "count": len(products),
        "data": [product.to_dict() for product in products],
    }


@router.get("/barcode/{code}")
async def get_product_by_barcode(code: str, user: AuthUser = Depends(get_current_user)):
    """Scanner lookup: matches the barcode or the SKU"""
    product = ProductRepository().find_by_barcode(user.id, code)
    if not product:
        raise ResourceNotFoundError("Product", code)

    return {"status": "success", "data": product.to_dict()}


@router.post("/generate-image")
async def generate_product_image(
    request: GenerateImageRequest,
    user: AuthUser = Depends(get_current_user),
    service: ProductImageService = Depends(get_product_image_service),
):
    return await service.generate_product_image(user.id, request)


@router.get("/{product_id}")
async def get_product(product_id: str, user: AuthUser = Depends(get_current_user)):
    product = ProductRepository().find_by_id(user.id, product_id)
    if not product:
        raise ResourceNotFoundError("Product", product_id)

    return {"status": "success", "data": product.to_dict()}


@router.get("/{product_id}/images")
async def get_product_images(product_id: str, user: AuthUser = Depends(get_current_user)):
    repo = ProductRepository()
    if not repo.find_by_id(user.id, product_id):
        raise ResourceNotFoundError("Product", product_id)

    return {"status": "success", "data": [image.model_dump() for image in repo.list_images(product_id)]}


@router.post("/", status_code=201)
async def create_product(data: ProductCreate, user: AuthUser = Depends(get_current_user)):
    product = ProductRepository().create(user.id, data)
    return {"status": "success", "data": product.to_dict()}


@router.put("/{product_id}")
async def update_product(product_id: str, updates: ProductUpdate, user: AuthUser = Depends(get_current_user)):
    product = ProductRepository().update(user.id, product_id, updates)
    if not product:
        raise ResourceNotFoundError("Product", product_id)

    return {"status": "success", "data": product.to_dict()}


@router.delete("/{product_id}")
async def delete_product(product_id: str, user: AuthUser = Depends(get_current_user)):
    if not ProductRepository().delete(user.id, product_id):
        raise ResourceNotFoundError("Product", product_id)

    return {"status": "success", "message": "Product deleted"}
