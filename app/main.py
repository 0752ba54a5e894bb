# app/main.py
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import SettlementError
from app.db.session import AsyncSessionLocal

from app.routers.auth import router as auth_router
from app.routers.lottery_types import router as lottery_types_router
from app.routers.rounds import router as rounds_router, public_router as public_rounds_router
from app.routers.bets import router as bets_router
import logging, sys

from app.tasks.scheduler import start_scheduler, shutdown_scheduler
from app.services.bootstrap_service import init_db, ensure_default_admin

app = FastAPI(
    title=settings.APP_NAME,
    version=getattr(settings, "APP_VERSION", "0.1.0"),
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logging.getLogger("uvicorn").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.CRITICAL)

logging.getLogger("apscheduler").setLevel(logging.ERROR)

# settlement and lifecycle lines stay visible
logging.getLogger("app.services.settlement").setLevel(logging.INFO)
logging.getLogger("app.services.round_service").setLevel(logging.INFO)


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "error": exc.kind},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "message": "invalid request",
            "error": "validation_error",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


app.include_router(auth_router)
app.include_router(lottery_types_router)
app.include_router(rounds_router)
app.include_router(public_rounds_router)
app.include_router(bets_router)

@app.on_event("startup")
async def on_startup() -> None:
    await init_db()
    async with AsyncSessionLocal() as session:
        await ensure_default_admin(session)
    start_scheduler()

@app.on_event("shutdown")
async def on_shutdown() -> None:
    shutdown_scheduler()

@app.get("/ping")
async def ping():
    return {"ok": True, "env": settings.APP_ENV}

@app.get("/healthz")
async def healthz():
    return {"status": "healthy"}
