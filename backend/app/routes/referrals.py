"""
Referral Routes - Referral statistics and invite links
"""
from fastapi import APIRouter, Depends, HTTPException

from app.core.dependencies import get_container
from app.core.exceptions import DatabaseError, NotFoundError

router = APIRouter(prefix="/referrals", tags=["referrals"])


@router.get("/{user_id}")
def get_referral_stats(user_id: int, container=Depends(get_container)):
    """Referral totals, unlock progress and invite link"""
    try:
        stats = container.referrals.get_stats(user_id)
        referrer = container.referrals.get_referrer(user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DatabaseError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "stats": stats,
        "referred_by": {"user_id": referrer.id, "display_name": referrer.display_name} if referrer else None
    }
