"""Read access to the user directory."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Query, Session, joinedload

from notification_hub.domain.entities import ADMIN_ROLE_ALIAS, Role, User
from notification_hub.infrastructure.models import RoleModel, UserModel


class UserRepository:
    """Directory lookups used for recipient targeting.

    Soft-deleted users are invisible to every lookup.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User | None:
        model = (
            self._directory(UserModel)
            .options(joinedload(UserModel.role))
            .filter(UserModel.id == user_id)
            .one_or_none()
        )
        return _user_from_model(model) if model is not None else None

    def get_map_by_ids(self, user_ids: Iterable[int]) -> dict[int, User]:
        wanted = {int(user_id) for user_id in user_ids}
        if not wanted:
            return {}
        models = (
            self._directory(UserModel)
            .options(joinedload(UserModel.role))
            .filter(UserModel.id.in_(wanted))
        )
        return {model.id: _user_from_model(model) for model in models}

    def list_active_ids(self) -> set[int]:
        rows = self._directory(UserModel.id).filter(UserModel.is_active.is_(True))
        return {row.id for row in rows}

    def list_active_admin_ids(self, role_alias: str = ADMIN_ROLE_ALIAS) -> set[int]:
        rows = (
            self._directory(UserModel.id)
            .join(RoleModel, UserModel.role_id == RoleModel.id)
            .filter(UserModel.is_active.is_(True))
            .filter(RoleModel.alias.ilike(role_alias))
        )
        return {row.id for row in rows}

    def _directory(self, *entities) -> Query:
        return self.session.query(*entities).filter(UserModel.deleted.is_(False))


def _user_from_model(model: UserModel) -> User:
    if model.role is None:
        raise ValueError(f"User {model.id} has no role")
    return User(
        id=model.id,
        role=Role(id=model.role.id, name=model.role.name, alias=model.role.alias),
        name=model.name,
        email=model.email,
        is_active=bool(model.is_active),
        deleted=bool(model.deleted),
        created_by=model.created_by,
        created_at=model.created_at,
    )


__all__ = ["UserRepository"]
