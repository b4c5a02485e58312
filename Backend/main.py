import asyncio
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import CORS_ORIGINS, LOG_LEVEL, ESCALATION_ENABLED, ESCALATION_INTERVAL_SECONDS
from database import engine, Base
from app_utils.exceptions import ServiceError
from routers.auth import router as auth_router
from routers.users import router as users_router
from routers.complaints import router as complaints_router
from routers.notifications import router as notifications_router
from routers.admin import router as admin_router
from services.escalation_service import escalation_loop

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="PublicVision API",
    description="Civic issue reporting: complaints, triage, notifications and SLA escalation",
    version="1.0.0"
)

_escalation_task = None


# -------------------------------------
# Startup - Create Database Tables, start escalation sweep
# -------------------------------------
@app.on_event("startup")
async def startup_event():
    global _escalation_task
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        logger.warning("Application will continue, but DB operations may fail")

    if ESCALATION_ENABLED:
        _escalation_task = asyncio.create_task(escalation_loop(ESCALATION_INTERVAL_SECONDS))
    else:
        logger.info("Escalation sweep disabled")


@app.on_event("shutdown")
async def shutdown_event():
    global _escalation_task
    if _escalation_task is not None:
        _escalation_task.cancel()
        try:
            await _escalation_task
        except asyncio.CancelledError:
            pass
        _escalation_task = None
        logger.info("Escalation sweep stopped")


# -------------------------------------
# ERROR HANDLING
# -------------------------------------
def _error_body(message):
    return {
        "status": "error",
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


# -------------------------------------
# CORS SETTINGS
# -------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------------------------------------
# ROUTERS
# -------------------------------------
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(complaints_router)
app.include_router(notifications_router)
app.include_router(admin_router)


# -------------------------------------
# Root Endpoint
# -------------------------------------
@app.get("/")
async def root():
    return {
        "message": "PublicVision API",
        "endpoints": {
            "auth": "/api/auth",
            "users": "/api/users",
            "complaints": "/api/complaints",
            "notifications": "/api/notifications",
            "admin": "/api/admin",
        }
    }

#--------------Health Check Endpoint----------------
@app.get("/health")
async def health_check():
    return {"status": "ok"}
