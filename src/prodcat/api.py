"""FastAPI application for the product catalog service."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from prodcat.approvals import ApprovalFilter, ApprovalStats, UserApprovalService
from prodcat.auth import require_owner, verify_supabase_jwt
from prodcat.config import CatalogConfig, get_config, get_config_unvalidated
from prodcat.dependencies import (
    build_app_resources,
    get_app_config,
    get_approval_service,
    get_catalog_session,
    get_import_service,
    get_selection,
)
from prodcat.exceptions import ContractError, NotFoundError
from prodcat.filtering import compute_stats, facets, paginate
from prodcat.import_service import CatalogImportService
from prodcat.models import (
    BulkDeleteRequest,
    BulkResult,
    BulkStatusRequest,
    CatalogRecord,
    ExportRequest,
    FilterSpec,
    ImportSummary,
    ProductPageResponse,
    UserProfile,
)
from prodcat.selection import SelectionCoordinator
from prodcat.services.upload_service import read_upload_with_limit
from prodcat.session import CatalogSession, ImageUpload

logger = logging.getLogger(__name__)

SERVICE_NAME = "product-catalog"
SERVICE_VERSION = "0.1.0"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
    swallow_errors=True,
)

router = APIRouter()


def _filter_spec(**values: Any) -> FilterSpec:
    try:
        return FilterSpec(**values)
    except ValidationError as e:
        raise ContractError(
            "INVALID_FILTER",
            "Invalid filter or sort parameters",
            status_code=400,
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e


async def _load(session: CatalogSession) -> CatalogSession:
    await run_in_threadpool(session.refresh)
    return session


async def _require_record(session: CatalogSession, record_id: str) -> CatalogRecord:
    await _load(session)
    record = session.find(record_id)
    if record is None:
        raise NotFoundError(f"Unknown record id: {record_id}")
    return record


@router.get("/health")
@limiter.exempt
async def health_check() -> Dict[str, Any]:
    """Health check endpoint for container orchestration."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }


@router.get("/products", response_model=ProductPageResponse)
@limiter.limit("120/minute")
async def list_products(
    request: Request,
    search: str = "",
    company: str = "all",
    category: str = "all",
    status_filter: str = Query("all", alias="status"),
    stock: str = "all",
    sort_by: str = Query("updatedAt-desc", alias="sortBy"),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=200),
    user: dict[str, Any] = Depends(verify_supabase_jwt),
    config: CatalogConfig = Depends(get_app_config),
    session: CatalogSession = Depends(get_catalog_session),
) -> ProductPageResponse:
    """Filtered, sorted and paginated view of the catalog."""
    _ = user
    spec = _filter_spec(
        search=search,
        company=company,
        category=category,
        status=status_filter,
        stock=stock,
        sort_by=sort_by,
    )
    await _load(session)
    records = session.records
    visible = session.visible(spec)
    window = paginate(visible, page, per_page or config.page_size)
    companies, categories = facets(records)
    return ProductPageResponse(
        items=window.items,
        page=window.page,
        per_page=window.per_page,
        total_pages=window.total_pages,
        filtered_count=len(visible),
        total_count=len(records),
        companies=companies,
        categories=categories,
        stats=compute_stats(records),
    )


@router.post("/products", response_model=CatalogRecord, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_product(
    request: Request,
    record: CatalogRecord,
    user: dict[str, Any] = Depends(require_owner),
    config: CatalogConfig = Depends(get_app_config),
    session: CatalogSession = Depends(get_catalog_session),
) -> CatalogRecord:
    _ = user
    update: dict[str, Any] = {"id": None}
    if record.low_stock_threshold is None:
        update["low_stock_threshold"] = config.default_low_stock_threshold
    draft = record.model_copy(update=update)
    return await run_in_threadpool(session.save, draft)


@router.put("/products/{record_id}", response_model=CatalogRecord)
@limiter.limit("30/minute")
async def update_product(
    request: Request,
    record_id: str,
    record: CatalogRecord,
    user: dict[str, Any] = Depends(require_owner),
    session: CatalogSession = Depends(get_catalog_session),
) -> CatalogRecord:
    _ = user
    await _require_record(session, record_id)
    return await run_in_threadpool(session.save, record.model_copy(update={"id": record_id}))


@router.delete("/products/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def delete_product(
    request: Request,
    record_id: str,
    user: dict[str, Any] = Depends(require_owner),
    session: CatalogSession = Depends(get_catalog_session),
) -> Response:
    _ = user
    await _require_record(session, record_id)
    await run_in_threadpool(session.delete, record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/products/{record_id}/duplicate",
    response_model=CatalogRecord,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
async def duplicate_product(
    request: Request,
    record_id: str,
    user: dict[str, Any] = Depends(require_owner),
    session: CatalogSession = Depends(get_catalog_session),
) -> CatalogRecord:
    _ = user
    record = await _require_record(session, record_id)
    return await run_in_threadpool(session.duplicate, record)


@router.post(
    "/products/{record_id}/image",
    response_model=CatalogRecord,
    responses={
        400: {"description": "Not an image"},
        413: {"description": "Image exceeds configured size limit"},
        502: {"description": "Blob store upload failed"},
    },
)
@limiter.limit("10/minute")
async def upload_product_image(
    request: Request,
    record_id: str,
    file: UploadFile = File(..., description="Thumbnail image"),
    user: dict[str, Any] = Depends(require_owner),
    config: CatalogConfig = Depends(get_app_config),
    session: CatalogSession = Depends(get_catalog_session),
) -> CatalogRecord:
    """Upload a thumbnail and persist its URL on the record."""
    _ = user
    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image files are supported",
        )

    record = await _require_record(session, record_id)
    data, _digest = await run_in_threadpool(
        read_upload_with_limit, file.file, config.max_image_size_mb * 1024 * 1024
    )
    image = ImageUpload(
        filename=file.filename or "image", content=data, content_type=content_type
    )
    return await run_in_threadpool(session.save, record, image)


@router.post(
    "/products/import",
    response_model=ImportSummary,
    responses={
        400: {"description": "Unsupported or malformed file"},
        413: {"description": "File exceeds configured size limit"},
    },
)
@limiter.limit("10/minute")
async def import_products(
    request: Request,
    file: UploadFile = File(..., description="CSV or XLSX product sheet"),
    dry_run: bool = Query(False, alias="dryRun"),
    user: dict[str, Any] = Depends(require_owner),
    config: CatalogConfig = Depends(get_app_config),
    import_service: CatalogImportService = Depends(get_import_service),
) -> ImportSummary:
    """Parse, normalize and persist an uploaded product sheet."""
    _ = user
    data, digest = await run_in_threadpool(
        read_upload_with_limit, file.file, config.max_import_size_mb * 1024 * 1024
    )
    logger.info("Import upload %s (%d bytes, sha256=%s)", file.filename, len(data), digest[:12])
    return await run_in_threadpool(
        import_service.import_file, file.filename or "", data, dry_run=dry_run
    )


@router.post("/products/bulk/status", response_model=BulkResult)
@limiter.limit("20/minute")
async def bulk_set_status(
    request: Request,
    payload: BulkStatusRequest,
    user: dict[str, Any] = Depends(require_owner),
    selection: SelectionCoordinator = Depends(get_selection),
) -> BulkResult:
    _ = user
    await _load(selection.session)
    selection.select_all_visible(payload.ids)
    return await run_in_threadpool(selection.bulk_set_status, payload.status)


@router.post("/products/bulk/delete", response_model=BulkResult)
@limiter.limit("20/minute")
async def bulk_delete(
    request: Request,
    payload: BulkDeleteRequest,
    user: dict[str, Any] = Depends(require_owner),
    selection: SelectionCoordinator = Depends(get_selection),
) -> BulkResult:
    _ = user
    await _load(selection.session)
    return await run_in_threadpool(selection.bulk_delete, payload.ids)


@router.post(
    "/products/export",
    responses={200: {"description": "CSV/XLSX file, or a message when nothing matched"}},
)
@limiter.limit("20/minute")
async def export_products(
    request: Request,
    payload: ExportRequest,
    user: dict[str, Any] = Depends(verify_supabase_jwt),
    selection: SelectionCoordinator = Depends(get_selection),
) -> Response:
    """Export the given ids, or every record matching the filters."""
    _ = user
    session = await _load(selection.session)
    visible = session.visible(payload.filters)
    if payload.ids is None:
        ids = [r.id for r in visible if r.id]
        if not ids:
            return JSONResponse(content={"message": "No products to export", "exported": 0})
    else:
        ids = payload.ids
    outcome = await run_in_threadpool(
        lambda: selection.bulk_export(payload.format, ids=ids, ordered=visible)
    )
    if outcome.artifact is None:
        return JSONResponse(content={"message": outcome.message, "exported": 0})

    artifact = outcome.artifact
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.filename}"',
            "X-Export-Count": str(artifact.row_count),
        },
    )


@router.get("/users", response_model=list[UserProfile])
@limiter.limit("60/minute")
async def list_users(
    request: Request,
    status_filter: ApprovalFilter = Query("all", alias="status"),
    search: Optional[str] = None,
    user: dict[str, Any] = Depends(require_owner),
    approvals: UserApprovalService = Depends(get_approval_service),
) -> list[UserProfile]:
    _ = user
    return await run_in_threadpool(approvals.list, status_filter, search)


@router.get("/users/stats", response_model=ApprovalStats)
@limiter.limit("60/minute")
async def user_stats(
    request: Request,
    user: dict[str, Any] = Depends(require_owner),
    approvals: UserApprovalService = Depends(get_approval_service),
) -> ApprovalStats:
    _ = user
    return await run_in_threadpool(approvals.stats)


@router.post("/users/{user_id}/approve", response_model=UserProfile)
@limiter.limit("30/minute")
async def approve_user(
    request: Request,
    user_id: str,
    user: dict[str, Any] = Depends(require_owner),
    approvals: UserApprovalService = Depends(get_approval_service),
) -> UserProfile:
    approved_by = str(user.get("email") or user.get("id"))
    return await run_in_threadpool(approvals.approve, user_id, approved_by)


@router.post("/users/{user_id}/revoke", response_model=UserProfile)
@limiter.limit("30/minute")
async def revoke_user(
    request: Request,
    user_id: str,
    user: dict[str, Any] = Depends(require_owner),
    approvals: UserApprovalService = Depends(get_approval_service),
) -> UserProfile:
    _ = user
    return await run_in_threadpool(approvals.revoke, user_id)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Rate limit exceeded handler."""
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please try again later."},
    )


async def contract_error_handler(request: Request, exc: ContractError) -> JSONResponse:
    """Map domain contract errors to stable API error payload."""
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = get_config()
    app.state.prodcat_resources = build_app_resources(config)
    logger.info("Catalog API started (mock=%s)", config.mock)
    yield


def create_app() -> FastAPI:
    """Build the FastAPI app with routes, CORS and error handlers."""
    app = FastAPI(
        title="Product Catalog Service",
        description="Import, filter, bulk-edit and export catalog records",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.limiter = limiter
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_config_unvalidated().get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Export-Count"],
    )
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ContractError, contract_error_handler)  # type: ignore[arg-type]
    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    """Run API server."""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "prodcat.api:app",
        host=config.api_host,
        port=config.api_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
