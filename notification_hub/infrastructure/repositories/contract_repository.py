"""Read-only lookups over contracts, their assignments and services."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, timedelta

from sqlalchemy.orm import Session

from notification_hub.domain.entities import (
    CONTRACT_STATUS_ACTIVE,
    PAYMENT_STATUS_PENDING,
    Contract,
    ContractAssignment,
    ContractService,
)
from notification_hub.infrastructure.models import (
    ContractAssignmentModel,
    ContractModel,
    ContractServiceModel,
)


class ContractRepository:
    """Query the contract records owned by the administration application."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, contract_id: int) -> Contract | None:
        model = self.session.get(ContractModel, contract_id)
        return self._to_entity(model) if model else None

    def list_assignments(
        self, contract_id: int, *, active_only: bool = True
    ) -> Sequence[ContractAssignment]:
        query = self.session.query(ContractAssignmentModel).filter(
            ContractAssignmentModel.contract_id == contract_id
        )
        if active_only:
            query = query.filter(ContractAssignmentModel.is_active.is_(True))
        return [
            ContractAssignment(
                contract_id=model.contract_id,
                user_id=model.user_id,
                role=model.role,
                is_active=bool(model.is_active),
            )
            for model in query.order_by(ContractAssignmentModel.id).all()
        ]

    def get_service(self, service_id: int) -> ContractService | None:
        model = self.session.get(ContractServiceModel, service_id)
        if model is None or model.contract is None:
            return None
        return ContractService(
            id=model.id,
            contract_id=model.contract_id,
            contract_number=model.contract.contract_number,
            service_name=model.service_name,
            status=model.status,
        )

    def list_active_expiring(
        self, today: date, milestones: Iterable[int]
    ) -> list[tuple[Contract, int]]:
        """Return active contracts whose end date is exactly ``milestone`` days away."""

        targets = {today + timedelta(days=days): days for days in milestones}
        if not targets:
            return []
        query = (
            self.session.query(ContractModel)
            .filter(ContractModel.status == CONTRACT_STATUS_ACTIVE)
            .filter(ContractModel.is_active.is_(True))
            .filter(ContractModel.end_date.in_(list(targets)))
            .order_by(ContractModel.end_date, ContractModel.id)
        )
        return [(self._to_entity(model), targets[model.end_date]) for model in query.all()]

    def list_pending_overdue(self, today: date) -> list[tuple[Contract, int]]:
        """Return contracts with a pending payment whose expected date has passed."""

        query = (
            self.session.query(ContractModel)
            .filter(ContractModel.payment_status == PAYMENT_STATUS_PENDING)
            .filter(ContractModel.status == CONTRACT_STATUS_ACTIVE)
            .filter(ContractModel.is_active.is_(True))
            .filter(ContractModel.expected_payment_date.is_not(None))
            .filter(ContractModel.expected_payment_date < today)
            .order_by(ContractModel.expected_payment_date, ContractModel.id)
        )
        return [
            (self._to_entity(model), (today - model.expected_payment_date).days)
            for model in query.all()
        ]

    @staticmethod
    def _to_entity(model: ContractModel) -> Contract:
        return Contract(
            id=model.id,
            contract_number=model.contract_number,
            created_by=model.created_by,
            client_name=model.client_name,
            status=model.status,
            is_active=bool(model.is_active),
            end_date=model.end_date,
            expected_payment_date=model.expected_payment_date,
            payment_status=model.payment_status,
        )


__all__ = ["ContractRepository"]
