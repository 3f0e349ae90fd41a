from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

# Set env before any fleet_ledger imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.fleet_ledger_test.db")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOCAL_STORAGE_PATH", ".tmp_storage_test")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("INIT_ADMIN_EMAIL", "")


@pytest.fixture(autouse=True)
def _reset_db_and_storage() -> None:
    import fleet_ledger.models  # noqa: F401
    from fleet_ledger.core.db import engine
    from fleet_ledger.core.models import Base

    # Reset storage cache and directory
    import fleet_ledger.core.storage as storage_mod

    storage_mod._storage = None

    storage_path = Path(os.environ["LOCAL_STORAGE_PATH"])
    if storage_path.exists():
        shutil.rmtree(storage_path)

    # Reset DB schema
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield


@pytest.fixture
def crew_and_vessel():
    from fleet_ledger.core.db import SessionLocal
    from fleet_ledger.modules.identity.models import UserRole
    from fleet_ledger.modules.identity.service import create_user
    from fleet_ledger.modules.vessels.service import create_vessel

    with SessionLocal() as session:
        user = create_user(
            session,
            email="crew@example.com",
            password="pw",
            role=UserRole.CREW,
            full_name="Crew",
        )
        vessel = create_vessel(session, name="Sea Breeze", registration_number="SB-1")
        return user.id, vessel.id


@pytest.fixture
def auth_headers(crew_and_vessel):
    from fleet_ledger.core.security import create_access_token

    user_id, _ = crew_and_vessel
    return {"Authorization": f"Bearer {create_access_token(subject=str(user_id))}"}
