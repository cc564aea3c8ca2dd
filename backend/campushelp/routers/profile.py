from typing import Optional

from fastapi import APIRouter, Depends

from campushelp.schemas.user import SessionUser
from campushelp.services.profile_service import ProfileService
from campushelp.utils.dependencies import get_current_user, get_profile_service


router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("/stats")
async def user_stats(user_id: Optional[str] = None, current_user: SessionUser = Depends(get_current_user), service: ProfileService = Depends(get_profile_service)):
    # counts are public; default to the caller
    stats = await service.get_user_stats(user_id or current_user.id)
    return stats.model_dump(mode="json")


@router.get("/activity")
async def recent_activity(current_user: SessionUser = Depends(get_current_user), service: ProfileService = Depends(get_profile_service)):
    items = await service.get_recent_activity(current_user.id)
    return {"items": [i.model_dump(mode="json") for i in items]}
