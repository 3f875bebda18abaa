"""SQLAlchemy 2.0 ORM models for the Rental Escrow Registry.

Three tables:
    1. registry_instances — One row per deployed registry (owner, paused, counter).
    2. agreements         — Rental agreements, keyed by (registry_address, agreement_id).
    3. agreement_events   — Append-only audit log of every state-changing message.

Design decisions:
    - Sequential integer agreement ids scoped to their registry instance.
    - Integer amounts in the ledger's smallest unit (no floating point).
    - CHECK constraints mirror the create-time guards and the status enum.
    - agreement_events is append-only: no UPDATE or DELETE at the application level.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. registry_instances
# ---------------------------------------------------------------------------
class RegistryInstance(Base):
    """A deployed registry: the per-instance contract metadata."""

    __tablename__ = "registry_instances"

    address: Mapped[str] = mapped_column(
        String(66),
        primary_key=True,
        comment="Address derived from the registry code hash and id",
    )
    registry_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Deploy-time identity tag",
    )
    code_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    owner: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Deployer identity; never changes",
    )
    paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    agreement_counter: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Highest agreement id assigned in this registry",
    )
    deployed_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Ledger time (unix seconds) of the first Deploy message",
    )

    __table_args__ = (
        CheckConstraint("agreement_counter >= 0", name="ck_registry_counter_non_negative"),
        Index("idx_registry_id", "registry_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<RegistryInstance address={self.address} id={self.registry_id} "
            f"paused={self.paused} agreements={self.agreement_counter}>"
        )


# ---------------------------------------------------------------------------
# 2. agreements
# ---------------------------------------------------------------------------
class AgreementRecord(Base):
    """A rental agreement between a landlord and a tenant."""

    __tablename__ = "agreements"

    # --- Composite Primary Key ---
    registry_address: Mapped[str] = mapped_column(
        String(66),
        ForeignKey("registry_instances.address", ondelete="CASCADE"),
        primary_key=True,
    )
    agreement_id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
    )

    # --- Participants ---
    landlord: Mapped[str] = mapped_column(String(128), nullable=False)
    tenant: Mapped[str] = mapped_column(String(128), nullable=False)

    # --- Terms ---
    deposit_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    rent_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    start_date: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Unix seconds",
    )
    term_length: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Seconds",
    )

    # --- Lifecycle ---
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="DRAFT",
        comment="Current lifecycle state (guarded by AgreementStateMachine)",
    )
    created_at: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Ledger time when CreateAgreement was processed",
    )
    staked_shares: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Deposit plus simulated yield, 0 until the deposit is confirmed",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('DRAFT', 'ACCEPTED', 'DEPOSIT_STAKED', 'COMPLETED', 'CANCELLED')",
            name="ck_agreement_valid_status",
        ),
        CheckConstraint("deposit_amount > 0", name="ck_agreement_positive_deposit"),
        CheckConstraint("rent_amount > 0", name="ck_agreement_positive_rent"),
        CheckConstraint("term_length > 0", name="ck_agreement_positive_term"),
        CheckConstraint("agreement_id > 0", name="ck_agreement_positive_id"),
        Index("idx_agreement_status", "registry_address", "status"),
        Index("idx_agreement_tenant", "tenant"),
        Index("idx_agreement_landlord", "landlord"),
    )

    def __repr__(self) -> str:
        return (
            f"<AgreementRecord registry={self.registry_address} id={self.agreement_id} "
            f"status={self.status} deposit={self.deposit_amount}>"
        )


# ---------------------------------------------------------------------------
# 3. agreement_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class AgreementEvent(Base):
    """Immutable audit record of one successful state-changing message.

    APPEND-ONLY. Registry-level events (deploy, pause) carry a null
    agreement_id.
    """

    __tablename__ = "agreement_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    registry_address: Mapped[str] = mapped_column(
        String(66),
        ForeignKey("registry_instances.address", ondelete="CASCADE"),
        nullable=False,
    )
    agreement_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    actor: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Sender identity of the message",
    )
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
        default=None,
    )
    ledger_time: Mapped[int] = mapped_column(BigInteger, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_event_agreement", "registry_address", "agreement_id"),
        Index("idx_event_type", "event_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<AgreementEvent id={self.id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )
