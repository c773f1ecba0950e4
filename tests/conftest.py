import os
import tempfile
import threading
import time
from contextlib import contextmanager

_DB_DIR = tempfile.mkdtemp(prefix="billing-tests-")

os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'billing.db')}"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SMTP_HOST"] = ""

from datetime import date, datetime  # noqa: E402
from decimal import Decimal  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402

from shared.core.database import Base, BillingSessionLocal, billing_engine  # noqa: E402
from billing_service.app.enum.bill_enum import BillStatus, LeaseStatus  # noqa: E402
from billing_service.app.models import Bill, Lease, Owner, Property, Tenant  # noqa: E402


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=billing_engine)
    Base.metadata.create_all(bind=billing_engine)
    yield


@pytest.fixture()
def session_factory():
    return BillingSessionLocal


@pytest.fixture()
def db():
    session = BillingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def fixed_clock():
    return lambda: datetime(2025, 11, 5, 9, 0, tzinfo=ZoneInfo("UTC"))


def make_owner(db, name="Owner", email="owner@example.com", super_admin=False) -> Owner:
    owner = Owner(name=name, email=email, is_super_admin=super_admin)
    db.add(owner)
    db.commit()
    db.refresh(owner)
    return owner


def make_lease(db, owner, tenant_name, rent, charges=0, status=LeaseStatus.ACTIVE) -> Lease:
    tenant = Tenant(name=tenant_name,
                    email=f"{tenant_name.lower().replace(' ', '.')}@example.com")
    prop = Property(owner_id=owner.id, title=f"{tenant_name} flat",
                    monthly_rent=None if rent is None else Decimal(str(rent)))
    db.add_all([tenant, prop])
    db.flush()

    lease = Lease(tenant_id=tenant.id, property_id=prop.id,
                  utility_charges=Decimal(str(charges)), status=status)
    db.add(lease)
    db.commit()
    db.refresh(lease)
    return lease


def make_bill(db, owner, amount="800.00", month="2025-11", due_date=date(2025, 11, 15),
              status=BillStatus.PENDING, payment_date=None, tenant_name="Bill Tenant") -> Bill:
    lease = make_lease(db, owner, tenant_name, amount)
    bill = Bill(
        owner_id=owner.id,
        tenant_id=lease.tenant_id,
        property_id=lease.property_id,
        month=month,
        amount=Decimal(amount),
        rent_amount=Decimal(amount),
        charges=Decimal("0.00"),
        total_amount=Decimal(amount),
        bill_date=due_date.replace(day=1),
        due_date=due_date,
        status=status,
        payment_date=payment_date,
    )
    db.add(bill)
    db.commit()
    db.refresh(bill)
    return bill


class SlowSessionFactory:
    """Opens sessions after ``delay`` seconds and counts the callers still holding one."""

    def __init__(self, delay):
        self.delay = delay
        self.started = 0
        self.finished = 0
        self._lock = threading.Lock()

    @contextmanager
    def __call__(self):
        with self._lock:
            self.started += 1
        try:
            time.sleep(self.delay)
            with BillingSessionLocal() as session:
                yield session
        finally:
            with self._lock:
                self.finished += 1
