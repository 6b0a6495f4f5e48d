"""Read-only views of the contract records consumed by the notification pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

CONTRACT_STATUS_ACTIVE = "active"
PAYMENT_STATUS_PENDING = "pendente"


@dataclass
class Contract:
    """Contract attributes used to target and word notifications."""

    id: int
    contract_number: str
    created_by: int | None
    client_name: str | None = None
    status: str = CONTRACT_STATUS_ACTIVE
    is_active: bool = True
    end_date: date | None = None
    expected_payment_date: date | None = None
    payment_status: str | None = None


@dataclass
class ContractAssignment:
    """Row of the contract/user assignment join."""

    contract_id: int
    user_id: int
    role: str
    is_active: bool


@dataclass
class ContractService:
    """A service line of a contract, including the owning contract number."""

    id: int
    contract_id: int
    contract_number: str
    service_name: str
    status: str | None = None


__all__ = [
    "CONTRACT_STATUS_ACTIVE",
    "PAYMENT_STATUS_PENDING",
    "Contract",
    "ContractAssignment",
    "ContractService",
]
