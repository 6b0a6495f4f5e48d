"""SQLAlchemy models for the contract records read by the notification pipeline."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression

from notification_hub.infrastructure.database import Base


class ContractModel(Base):
    """Database representation of a contract."""

    __tablename__ = "contract"

    id = Column(Integer, primary_key=True, index=True)
    contract_number = Column(String(50), nullable=False, unique=True)
    client_name = Column(String(255), nullable=True)
    created_by = Column(Integer, ForeignKey("user.id"), nullable=True, index=True)
    status = Column(String(30), nullable=False, default="active")
    is_active = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    end_date = Column(Date, nullable=True)
    expected_payment_date = Column(Date, nullable=True)
    payment_status = Column(String(30), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    assignments = relationship(
        "ContractAssignmentModel",
        back_populates="contract",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ContractAssignmentModel(Base):
    """Join between contracts and the users assigned to them."""

    __tablename__ = "contract_user"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(
        Integer, ForeignKey("contract.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(
        Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String(20), nullable=False, default="viewer")
    is_active = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    assigned_at = Column(DateTime, nullable=False, server_default=func.now())

    contract = relationship("ContractModel", back_populates="assignments")


class ContractServiceModel(Base):
    """A service line belonging to a contract."""

    __tablename__ = "contract_service"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(
        Integer, ForeignKey("contract.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_name = Column(String(255), nullable=False)
    status = Column(String(30), nullable=True)

    contract = relationship("ContractModel", lazy="joined")


__all__ = ["ContractAssignmentModel", "ContractModel", "ContractServiceModel"]
