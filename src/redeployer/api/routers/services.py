"""Service definitions router: CRUD, deploy and full-status refresh."""

from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from redeployer.context import AppContext
from redeployer.errors import NotFoundError, StoreError
from redeployer.models import RequestFullStatus, ServiceDefinition, ServiceFields

from ..dependencies import get_context

logger = structlog.get_logger()

router = APIRouter(tags=["services"])


def _store_failure(e: StoreError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Database error: {e}",
    )


@router.get("/services", response_model=list[ServiceDefinition])
async def list_services(ctx: AppContext = Depends(get_context)) -> list[ServiceDefinition]:
    """List all service definitions."""
    try:
        return await ctx.store.list_services()
    except StoreError as e:
        raise _store_failure(e) from e


@router.get("/services/{service_id}", response_model=ServiceDefinition)
async def get_service(
    service_id: int,
    ctx: AppContext = Depends(get_context),
) -> ServiceDefinition:
    """Get a service definition by ID."""
    try:
        return await ctx.store.get_service(service_id)
    except StoreError as e:
        raise _store_failure(e) from e


@router.post("/services", response_model=ServiceDefinition, status_code=status.HTTP_201_CREATED)
async def create_service(
    service_in: ServiceFields,
    ctx: AppContext = Depends(get_context),
) -> ServiceDefinition:
    """Create a service definition and ask viewers to refresh."""
    try:
        service = await ctx.store.create_service(service_in)
    except StoreError as e:
        logger.error("service_create_failed", service_name=service_in.name, error=str(e))
        raise _store_failure(e) from e

    ctx.bus.publish(RequestFullStatus())
    return service


@router.put("/services/{service_id}", response_model=ServiceDefinition)
async def update_service(
    service_id: int,
    service_in: ServiceFields,
    ctx: AppContext = Depends(get_context),
) -> ServiceDefinition:
    """Replace a service definition and ask viewers to refresh."""
    try:
        service = await ctx.store.update_service(service_id, service_in)
    except StoreError as e:
        logger.error("service_update_failed", service_id=service_id, error=str(e))
        raise _store_failure(e) from e

    ctx.bus.publish(RequestFullStatus())
    return service


@router.post("/services/{service_id}/deploy", status_code=status.HTTP_202_ACCEPTED)
async def deploy_service(service_id: int, ctx: AppContext = Depends(get_context)) -> dict:
    """Start a deployment in the background; progress arrives on the live stream."""
    ctx.dispatcher.request(service_id)
    return {"status": "accepted", "service_id": service_id}


@router.post("/all_status")
async def all_status_request(ctx: AppContext = Depends(get_context)) -> dict:
    """Ask every connected viewer to re-render the full service list."""
    delivered = ctx.bus.publish(RequestFullStatus())
    return {"status": "ok", "subscribers": delivered}
