from routers.jobs import router as jobs_router
from routers.prescriptions import router as prescriptions_router
from routers.settings import router as settings_router

__all__ = [
    "jobs_router",
    "prescriptions_router",
    "settings_router",
]
