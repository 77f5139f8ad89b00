from fastapi import APIRouter

from billdesk.dependencies.dbDependecies import db_dependency
from billdesk.dependencies.userDependencies import CurrentUserId
from billdesk.modules.stats.schemas import DashboardStats
from billdesk.modules.stats.service import StatsService

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("/", response_model=DashboardStats)
def get_dashboard_stats(user_id: CurrentUserId, db: db_dependency):
    """Resumen del panel: catálogo, estados de documentos, cartera y egresos"""
    return StatsService(db).get_dashboard_stats()
