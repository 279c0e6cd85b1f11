"""Database repositories.

Repositories wrap a single ``AsyncSession`` and expose the queries the
stores need. Every webhook query takes a tenant id; none can cross tenants.
"""

from .base import TenantScopedRepository
from .configuration import ConfigurationRepository
from .event import EventRepository

__all__ = [
    "TenantScopedRepository",
    "ConfigurationRepository",
    "EventRepository",
]
