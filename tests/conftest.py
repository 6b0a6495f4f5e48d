"""Shared fixtures: an in-memory database and helpers to seed directory data."""

from __future__ import annotations

import os
from datetime import date

import pytest

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("SENDGRID_SENDER", None)

from notification_hub.config import reset_settings_cache

reset_settings_cache()

from notification_hub.infrastructure import database  # noqa: E402
from notification_hub.infrastructure.models import (  # noqa: E402
    ContractAssignmentModel,
    ContractModel,
    ContractServiceModel,
    RoleModel,
    UserModel,
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def clean_database():
    """Recreate every table before each test."""

    database.Base.metadata.drop_all(bind=database.engine, checkfirst=True)
    database.initialize_database()
    yield
    database.Base.metadata.drop_all(bind=database.engine, checkfirst=True)


@pytest.fixture
def db_session():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


class Seeder:
    """Insert directory rows with sensible defaults."""

    def __init__(self, session) -> None:
        self.session = session
        self._roles: dict[str, RoleModel] = {}

    def role(self, alias: str) -> RoleModel:
        if alias not in self._roles:
            model = RoleModel(name=alias.capitalize(), alias=alias)
            self.session.add(model)
            self.session.commit()
            self._roles[alias] = model
        return self._roles[alias]

    def user(
        self,
        user_id: int,
        *,
        role: str = "user",
        is_active: bool = True,
        deleted: bool = False,
        name: str | None = None,
    ) -> UserModel:
        model = UserModel(
            id=user_id,
            role_id=self.role(role).id,
            name=name or f"Usuario {user_id}",
            email=f"user{user_id}@example.com",
            is_active=is_active,
            deleted=deleted,
        )
        self.session.add(model)
        self.session.commit()
        return model

    def contract(
        self,
        contract_id: int,
        *,
        created_by: int | None = None,
        status: str = "active",
        end_date: date | None = None,
        expected_payment_date: date | None = None,
        payment_status: str | None = None,
        client_name: str | None = "Cliente S.A.",
    ) -> ContractModel:
        model = ContractModel(
            id=contract_id,
            contract_number=f"CT-{contract_id:04d}",
            client_name=client_name,
            created_by=created_by,
            status=status,
            end_date=end_date,
            expected_payment_date=expected_payment_date,
            payment_status=payment_status,
        )
        self.session.add(model)
        self.session.commit()
        return model

    def assign(
        self, contract_id: int, user_id: int, *, role: str = "viewer", is_active: bool = True
    ) -> ContractAssignmentModel:
        model = ContractAssignmentModel(
            contract_id=contract_id, user_id=user_id, role=role, is_active=is_active
        )
        self.session.add(model)
        self.session.commit()
        return model

    def service(
        self, service_id: int, contract_id: int, *, name: str = "Instalación"
    ) -> ContractServiceModel:
        model = ContractServiceModel(
            id=service_id, contract_id=contract_id, service_name=name, status="not_started"
        )
        self.session.add(model)
        self.session.commit()
        return model


@pytest.fixture
def seed(db_session) -> Seeder:
    return Seeder(db_session)
