# rapid_assessment/main.py
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rapid_assessment.api.v1.assessments import router as assessments_router
from rapid_assessment.api.v1.auth import router as auth_router
from rapid_assessment.api.v1.companies import router as companies_router
from rapid_assessment.api.v1.llm import router as llm_router
from rapid_assessment.api.v1.questionnaires import router as questionnaires_router
from rapid_assessment.api.v1.reports import router as reports_router
from rapid_assessment.core.config import settings
from rapid_assessment.core.exceptions import RapidAssessmentError
from rapid_assessment.core.logging_config import configure_logging, generate_request_id, request_id_var
from rapid_assessment.db.mongo import init_db, close_db
from rapid_assessment.services.validation_cache import validation_cache

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="RAPID Assessment API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount auth routes at the root `/auth` paths
app.include_router(auth_router)
app.include_router(companies_router, prefix="/api/v1")
app.include_router(assessments_router, prefix="/api/v1")
app.include_router(questionnaires_router, prefix="/api/v1")
app.include_router(reports_router, prefix="/api/v1")
app.include_router(llm_router, prefix="/api/v1")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or generate_request_id()
    token = request_id_var.set(request_id)
    started = time.monotonic()
    try:
        response = await call_next(request)
        logger.info("%s %s -> %s (%.1fms)", request.method, request.url.path, response.status_code,
                    (time.monotonic() - started) * 1000)
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        request_id_var.reset(token)


@app.exception_handler(RapidAssessmentError)
async def domain_error_handler(request: Request, exc: RapidAssessmentError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "env": settings.APP_ENV}


@app.on_event("startup")
async def startup_event():
    await init_db()


@app.on_event("shutdown")
async def shutdown_event():
    await validation_cache.close()
    close_db()
