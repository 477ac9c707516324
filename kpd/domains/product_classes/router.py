"""
Product class API router.

Listing, search and code-addressed hierarchy navigation under
``/api/product_classes``.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, Path, Query

from ...core.dependencies import get_product_class_service
from ...shared.exceptions import BadRequestException, NotFoundException
from ...shared.responses import ErrorResponse, ValidationErrorResponse
from .enums import HierarchyLevel, SearchLanguage
from .schemas import ProductClassListPayload, ProductClassPayload, ProductClassResponse
from .service import ProductClassService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/product_classes",
    tags=["Product classes"],
)

COMMON_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Bad request"},
    404: {"model": ErrorResponse, "description": "Product class not found"},
    422: {"model": ValidationErrorResponse, "description": "Validation failed"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}

MAX_LIMIT = 1000
RESOURCE = "Product class"

LevelQuery = Query(None, ge=HierarchyLevel.SECTION, le=HierarchyLevel.SUBCATEGORY, description="Hierarchy level (1-6)")
IncludeExpiredQuery = Query(False, description="Include entries whose end date has passed")
CodePath = Path(..., description="Full code (A01.11) or official code (01.11)")


@router.get(
    "",
    response_model=ProductClassListPayload,
    summary="List product classes",
    responses=COMMON_ERROR_RESPONSES,
)
async def list_product_classes(
    level: Optional[int] = LevelQuery,
    limit: int = Query(100, ge=1, le=MAX_LIMIT, description="Maximum results"),
    offset: int = Query(0, ge=0, description="Pagination offset"),
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassListPayload:
    """List entries ordered by hierarchy path."""
    entries = await service.list(level=level, limit=limit, offset=offset, include_expired=include_expired)
    return ProductClassListPayload.from_entries(entries)


@router.get(
    "/roots",
    response_model=ProductClassListPayload,
    summary="List sections",
    responses=COMMON_ERROR_RESPONSES,
)
async def list_roots(
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassListPayload:
    entries = await service.list_roots(include_expired=include_expired)
    return ProductClassListPayload.from_entries(entries)


@router.get(
    "/search",
    response_model=ProductClassListPayload,
    summary="Fuzzy search by name",
    responses=COMMON_ERROR_RESPONSES,
)
async def search_product_classes(
    q: Optional[str] = Query(None, description="Search text, at least three characters to match"),
    lang: SearchLanguage = Query(SearchLanguage.ALL, description="Name language: hr, en or all"),
    level: Optional[int] = LevelQuery,
    limit: int = Query(20, ge=1, le=MAX_LIMIT, description="Maximum results"),
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassListPayload:
    """Trigram search over Croatian and/or English names, best match first."""
    if q is None:
        raise BadRequestException("Missing required parameter: q")
    if not q.strip():
        raise BadRequestException("Search query cannot be empty")

    entries = await service.search(q, lang=lang, level=level, limit=limit, include_expired=include_expired)
    return ProductClassListPayload.from_entries(entries)


@router.get(
    "/search_by_code",
    response_model=ProductClassListPayload,
    summary="Search by code prefix",
    responses=COMMON_ERROR_RESPONSES,
)
async def search_by_code(
    code: Optional[str] = Query(None, description="Full code prefix, e.g. A01.1"),
    limit: int = Query(20, ge=1, le=MAX_LIMIT, description="Maximum results"),
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassListPayload:
    if code is None:
        raise BadRequestException("Missing required parameter: code")
    if not code.strip():
        raise BadRequestException("Code prefix cannot be empty")

    entries = await service.search_by_code(code, limit=limit, include_expired=include_expired)
    return ProductClassListPayload.from_entries(entries)


@router.get(
    "/by_code/{code}",
    response_model=ProductClassPayload,
    summary="Get a product class by code",
    responses=COMMON_ERROR_RESPONSES,
)
async def get_product_class(
    code: str = CodePath,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassPayload:
    entry = await service.get_by_code_or_raise(code)
    return ProductClassPayload(data=ProductClassResponse.from_domain(entry))


@router.get(
    "/by_code/{code}/children",
    response_model=ProductClassListPayload,
    summary="Direct children",
    responses=COMMON_ERROR_RESPONSES,
)
async def get_children(
    code: str = CodePath,
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassListPayload:
    entries = await service.children_of(code, include_expired=include_expired)
    if entries is None:
        raise NotFoundException(RESOURCE, code)
    return ProductClassListPayload.from_entries(entries)


@router.get(
    "/by_code/{code}/descendants",
    response_model=ProductClassListPayload,
    summary="All descendants",
    responses=COMMON_ERROR_RESPONSES,
)
async def get_descendants(
    code: str = CodePath,
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassListPayload:
    entries = await service.descendants_of(code, include_expired=include_expired)
    if entries is None:
        raise NotFoundException(RESOURCE, code)
    return ProductClassListPayload.from_entries(entries)


@router.get(
    "/by_code/{code}/ancestors",
    response_model=ProductClassListPayload,
    summary="Ancestors, root first",
    responses=COMMON_ERROR_RESPONSES,
)
async def get_ancestors(
    code: str = CodePath,
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassListPayload:
    entries = await service.ancestors_of(code, include_expired=include_expired)
    if entries is None:
        raise NotFoundException(RESOURCE, code)
    return ProductClassListPayload.from_entries(entries)


@router.get(
    "/by_code/{code}/full_path",
    response_model=ProductClassListPayload,
    summary="Ancestors followed by the entry itself",
    responses=COMMON_ERROR_RESPONSES,
)
async def get_full_path(
    code: str = CodePath,
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassListPayload:
    entries = await service.full_path_of(code, include_expired=include_expired)
    if entries is None:
        raise NotFoundException(RESOURCE, code)
    return ProductClassListPayload.from_entries(entries)


@router.get(
    "/by_code/{code}/parent",
    response_model=ProductClassPayload,
    summary="Immediate parent",
    responses=COMMON_ERROR_RESPONSES,
)
async def get_parent(
    code: str = CodePath,
    include_expired: bool = IncludeExpiredQuery,
    service: ProductClassService = Depends(get_product_class_service),
) -> ProductClassPayload:
    parent = await service.parent_of(code, include_expired=include_expired)
    if parent is None:
        raise NotFoundException(RESOURCE, code, message=f"No parent found for product class '{code}'")
    return ProductClassPayload(data=ProductClassResponse.from_domain(parent))
