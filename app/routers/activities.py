from fastapi import APIRouter, Depends, Query

from app.crud import activity_crud
from app.deps import CurrentUser, require_staff
from app.schemas import ActivityResponse

router = APIRouter(prefix="/activities", tags=["activities"])


@router.get("", response_model=list[ActivityResponse])
async def list_activities(
    limit: int = Query(default=5, ge=1, le=100),
    _: CurrentUser = Depends(require_staff),
) -> list[ActivityResponse]:
    """Most recent audit entries first."""
    return await activity_crud.list_recent(limit)
