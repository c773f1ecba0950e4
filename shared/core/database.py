from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from shared.core.config import BILLING_DATABASE_URL

Base = declarative_base()

POOL_SIZE = 2
MAX_OVERFLOW = 2


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        # worker threads run the per-lease work
        return create_engine(
            database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_size=POOL_SIZE,          # max idle connections
        max_overflow=MAX_OVERFLOW,      # max temporary extra connections
        pool_timeout=30       # wait time before failing
    )


# Billing DB
billing_engine = build_engine(BILLING_DATABASE_URL)
BillingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=billing_engine)


# Dependency


def get_billing_db():
    db = BillingSessionLocal()
    try:
        yield db
    finally:
        db.close()
