# Import every mapped class so relationship() strings resolve and
# Base.metadata.create_all() sees all tables.
from shared.models.owners import Owner
from .leasing_tenants.tenants import Tenant
from .leasing_tenants.properties import Property
from .leasing_tenants.leases import Lease
from .financials.bills import Bill
from .financials.profits import Profit

__all__ = ["Owner", "Tenant", "Property", "Lease", "Bill", "Profit"]
