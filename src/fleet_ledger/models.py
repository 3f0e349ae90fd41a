"""
Model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

# Import User first - other models have relationships to User
from fleet_ledger.modules.identity.models import User  # noqa: F401

from fleet_ledger.modules.vessels.models import Vessel  # noqa: F401
from fleet_ledger.modules.expenses.models import Expense  # noqa: F401
