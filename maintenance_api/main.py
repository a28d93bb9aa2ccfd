# maintenance_api/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from maintenance_api.analytics import router as analytics_router
from maintenance_api.schedules import router as schedules_router
from maintenance_core.config import get_settings
from maintenance_core.errors import Conflict, InvalidArgument, NoData, NotFound, Unavailable

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Maintenance & Inventory Dashboard API")

# Enable CORS for the dashboard frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    InvalidArgument: 422,
    NotFound: 404,
    Conflict: 409,
    Unavailable: 503,
}


def _error_handler(status_code: int):
    async def handler(request: Request, exc):
        if status_code >= 500:
            logger.warning("%s %s unavailable: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=status_code, content={"detail": exc.detail})
    return handler


for error, status_code in ERROR_STATUS.items():
    app.add_exception_handler(error, _error_handler(status_code))


@app.exception_handler(NoData)
async def no_data_handler(request: Request, exc: NoData):
    # a well-defined KPI with no samples, distinct from an error or a zero
    return JSONResponse(status_code=200, content={"status": "no_data", "detail": exc.detail})


# Register routers
app.include_router(analytics_router, prefix="/analytics", tags=["Analytics"])
app.include_router(schedules_router, prefix="/maintenance-schedule", tags=["Maintenance Schedule"])
