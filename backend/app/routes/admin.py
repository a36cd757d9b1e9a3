"""
Admin Routes - Broadcast, ad and promo code management, guarded by a shared token
"""
import hmac
from fastapi import APIRouter, Depends, Header, HTTPException

from app.core.config import settings
from app.core.dependencies import get_container
from app.core.exceptions import (
    BroadcastAlreadyRunningError,
    DatabaseError,
    NotFoundError,
    PromocodeExistsError
)
from app.models import (
    CreateAdRequest,
    CreateBroadcastRequest,
    CreatePromocodeRequest,
    UpdatePromocodeRequest
)


def require_admin(x_admin_token: str = Header(default="")):
    """Reject requests without the configured admin token"""
    if not settings.ADMIN_TOKEN or not hmac.compare_digest(x_admin_token, settings.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Admin token required")


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/broadcasts")
def list_broadcasts(container=Depends(get_container)):
    try:
        return container.broadcasts.list_broadcasts()
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/broadcasts", status_code=201)
def create_broadcast(request: CreateBroadcastRequest, container=Depends(get_container)):
    try:
        return container.broadcasts.create_broadcast(request)
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/broadcasts/{broadcast_id}/start")
def start_broadcast(broadcast_id: int, container=Depends(get_container)):
    """Start a draft broadcast or resume a paused one"""
    try:
        return container.broadcasts.start_broadcast(broadcast_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except BroadcastAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/broadcasts/{broadcast_id}/pause")
def pause_broadcast(broadcast_id: int, container=Depends(get_container)):
    try:
        return container.broadcasts.pause_broadcast(broadcast_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/ads")
def list_ads(container=Depends(get_container)):
    try:
        return container.ads.list_ads()
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/ads", status_code=201)
def create_ad(request: CreateAdRequest, container=Depends(get_container)):
    try:
        return container.ads.create_ad(request)
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/promocodes")
def list_promocodes(container=Depends(get_container)):
    try:
        return container.promocodes.list_promocodes()
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/promocodes", status_code=201)
def create_promocode(request: CreatePromocodeRequest, container=Depends(get_container)):
    try:
        return container.promocodes.create_promocode(request)
    except PromocodeExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.patch("/promocodes/{code}")
def update_promocode(code: str, request: UpdatePromocodeRequest, container=Depends(get_container)):
    """Switch a promo code on or off"""
    try:
        return container.promocodes.set_active(code, request.is_active)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/promocodes/{code}", status_code=204)
def delete_promocode(code: str, container=Depends(get_container)):
    try:
        container.promocodes.delete_promocode(code)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))
