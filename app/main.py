# app/main.py
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .config import settings
from .db import Base, engine
from .auth import router as auth_core_router
from .routes_auth import auth_router
from .otp_routes import router as otp_router
from .year_buckets import router as year_buckets_router
from .fasts import router as fasts_router
from .ledger import router as ledger_router
from .dashboard import router as dashboard_router
from .users import router as users_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app.http")

api = FastAPI(
    title="Rayyan API",
    version="0.3.0",
    docs_url="/docs",            # Swagger -> /api/docs
    openapi_url="/openapi.json", # OpenAPI -> /api/openapi.json
)

api.include_router(auth_core_router)
api.include_router(auth_router)
api.include_router(otp_router)
api.include_router(year_buckets_router)
api.include_router(fasts_router)
api.include_router(ledger_router)
api.include_router(dashboard_router)
api.include_router(users_router)


api.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@api.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s - %s - %.0fms", request.method, request.url.path, response.status_code, elapsed_ms)
    return response

@api.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}


site = FastAPI()
site.mount("/api", api)

app = site


# Create tables
Base.metadata.create_all(bind=engine)
