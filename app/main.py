from dotenv import load_dotenv
import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(BASE_DIR, ".env"))

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.database import create_tables
from app.core.errors import AuthFlowError
from app.core.logging_config import setup_logging

# ───────────────── ROUTER IMPORTS ─────────────────
from app.routes.auth import router as admin_auth_router
from app.routes.student_auth import router as student_auth_router
from app.routes.functions import router as functions_router
from app.routes.students import router as students_router
from app.routes.assessments import router as admin_assessments_router
from app.routes.assessments import student_router as assessments_router
from app.routes.admin_students import router as admin_students_router
from app.routes.presence import router as presence_router
from app.routes.notifications import router as notifications_router

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
    logger.info("DevPath API started (env=%s)", settings.APP_ENV)
    yield


app = FastAPI(
    title="DevPath API",
    description="Backend API for the DevPath career guidance app",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

# ───────── SAFE VALIDATION HANDLER ─────────

def _sanitize(obj):
    if isinstance(obj, (bytes, bytearray)):
        return f"<bytes:{len(obj)}>"
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    return obj


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    safe_errors = _sanitize(exc.errors())
    return JSONResponse(
        status_code=422,
        content={"detail": safe_errors},
    )


@app.exception_handler(AuthFlowError)
async def auth_flow_exception_handler(request: Request, exc: AuthFlowError):
    logger.warning("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})

# ───────────────── CORS ─────────────────

origins = settings.origins_list or [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ───────────────── ROUTES ─────────────────

# Students: auth, callable functions, own profile/results
app.include_router(student_auth_router, prefix="/api")
app.include_router(functions_router, prefix="/api")
app.include_router(students_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(assessments_router, prefix="/api")
app.include_router(presence_router, prefix="/api")

# Admin back-office
app.include_router(admin_auth_router, prefix="/api")
app.include_router(admin_students_router, prefix="/api")
app.include_router(admin_assessments_router, prefix="/api")

# ───────────────── HEALTH ─────────────────

@app.get("/", tags=["Health"])
async def root():
    return {
        "status": "ok",
        "app": "DevPath API",
        "env": settings.APP_ENV,
    }


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "healthy"}
