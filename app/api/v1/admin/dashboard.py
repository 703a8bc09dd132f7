from fastapi import APIRouter, Depends, status

from app.core.deps import AuthorizationService
from app.libs.formats.response import success
from app.services.admin.dashboard import DashboardService

router = APIRouter(prefix="/admin", tags=["ADMIN DASHBOARD"])


@router.get("/dashboard/stats", status_code=status.HTTP_200_OK)
async def get_dashboard_stats(
    authorization: AuthorizationService = Depends(AuthorizationService),
    dashboard_service: DashboardService = Depends(DashboardService),
):
    await authorization.require_admin()
    data = await dashboard_service.get_stats_async()
    return success("DASHBOARD_STATS_SUCCESS", "Statistik dashboard berhasil diambil", data)


@router.get("/stats", status_code=status.HTTP_200_OK)
async def get_stats(
    authorization: AuthorizationService = Depends(AuthorizationService),
    dashboard_service: DashboardService = Depends(DashboardService),
):
    await authorization.require_admin()
    data = await dashboard_service.get_stats_async()
    return success("STATS_FETCH_SUCCESS", "Statistik berhasil diambil", data)
