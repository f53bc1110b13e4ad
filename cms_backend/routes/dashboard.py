from fastapi import APIRouter, Depends

from ..deps import get_current_user, get_dashboard_repository
from ..repositories import DashboardRepository
from ..responses import success_response

router = APIRouter(prefix="/dashboard", tags=["dashboard"], dependencies=[Depends(get_current_user)])


@router.get("/stats")
def stats(dashboard: DashboardRepository = Depends(get_dashboard_repository)):
    """Totals per entity plus the latest posts and the most used tags."""
    return success_response(dashboard.stats(), "Statistics retrieved successfully.")


@router.get("/activity")
def activity(dashboard: DashboardRepository = Depends(get_dashboard_repository)):
    return success_response(dashboard.activity(), "Recent activity retrieved successfully.")
