"""
User Routes - Registration and profile endpoints
"""
from fastapi import APIRouter, Depends, HTTPException

from app.core.dependencies import get_container
from app.core.exceptions import DatabaseError, NotFoundError, PromocodeError
from app.models import ApplyPromocodeRequest, ReferralStageCompleted
from app.models.user import RegisterUserRequest

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/register")
def register_user(request: RegisterUserRequest, container=Depends(get_container)):
    """Create or refresh a user; a referral code is applied for new users only"""
    try:
        result = container.users.register_user(
            request.external_id,
            request.username,
            request.first_name,
            request.referral_code
        )
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if result.referral is not None:
        container.notifications.dispatch([ReferralStageCompleted(**result.referral.model_dump())])
    return result


@router.get("/{user_id}/profile")
def get_profile(user_id: int, container=Depends(get_container)):
    """Profile summary with premium status and overall streak"""
    try:
        return container.users.get_profile(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{user_id}/promocode")
def apply_promocode(user_id: int, request: ApplyPromocodeRequest, container=Depends(get_container)):
    """Attach a promo code to the user's next payment"""
    try:
        return container.promocodes.apply_promocode(user_id, request.code)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PromocodeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))
