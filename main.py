import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from api.audit_logs import router as audit_logs_router
from api.borrowers import router as borrowers_router
from api.cron import router as cron_router
from api.loan_applications import router as loan_applications_router
from api.loans import router as loans_router
from api.payments import router as payments_router
from api.reports import router as reports_router
from services.errors import LoanDeskError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("%s started (%s)", settings.app_name, settings.environment)
    yield


app = FastAPI(
    title=settings.app_name,
    description="Loan tracking, repayment ledger and application review API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LoanDeskError)
async def loan_desk_error_handler(request: Request, exc: LoanDeskError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(borrowers_router)
app.include_router(loans_router)
app.include_router(payments_router)
app.include_router(loan_applications_router)
app.include_router(reports_router)
app.include_router(cron_router)
app.include_router(audit_logs_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
