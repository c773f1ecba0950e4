# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.core.config import settings
from shared.core.database import Base, billing_engine
from shared.exception_handler import setup_exception_handlers
from shared.wrappers.response_wrapper import JsonResponseMiddleware

from .crud.scheduler.scheduler_service import BillingScheduler
from .models import Bill, Lease, Owner, Profit, Property, Tenant  # noqa: F401
from .router.financials import bills_router
from .router.system import scheduler_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s]: %(message)s"
)
logger = logging.getLogger(__name__)

# Create all tables
Base.metadata.create_all(bind=billing_engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = BillingScheduler()
    app.state.scheduler = scheduler

    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("Billing scheduler disabled, manual triggers only")

    yield

    if scheduler.initialized:
        await scheduler.stop()


# This MUST exist for uvicorn
app = FastAPI(title="Billing Service API", lifespan=lifespan)

# Allow requests from your React app
origins = [
    "http://localhost:8080",
    "http://127.0.0.1:8003"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom JSON response wrapper middleware
app.add_middleware(JsonResponseMiddleware)

# Register exception handlers
setup_exception_handlers(app)

# Routers
app.include_router(bills_router.router)
app.include_router(scheduler_router.router)


@app.get("/api/billing/health")
def health():
    return {"status": "healthy"}
