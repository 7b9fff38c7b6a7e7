"""
SQLAlchemy database models for the proposal cache.

ORM models that map to the four cache tables with proper indexing,
constraints, and relationships.

Responsibility: Define database schema and ORM mappings
"""

from typing import Optional

from sqlalchemy import (
    Boolean, ForeignKey, Index, Integer, LargeBinary, PrimaryKeyConstraint,
    String, Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


class ProposalModel(Base):
    """
    Database model for DAO proposals.

    ``id`` is the chain-native hex proposal id; ``proposal_number`` is the
    DAO-local sequence used for human-facing lookups.
    """

    __tablename__ = "proposals"

    id: Mapped[str] = mapped_column(String(80), primary_key=True)
    proposal_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)

    # Content
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    proposer: Mapped[str] = mapped_column(String(42), nullable=False)

    # Derived at sync time
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    # Timing (unix seconds / block number)
    time_created: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    vote_start: Mapped[int] = mapped_column(Integer, nullable=False)
    vote_end: Mapped[int] = mapped_column(Integer, nullable=False)
    snapshot_block: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Tallies
    for_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    against_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    abstain_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quorum_votes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Flags
    executed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    canceled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vetoed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    queued: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    transaction_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    expires_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    executable_from: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Local write time, not chain time
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<ProposalModel(number={self.proposal_number}, status={self.status})>"


class VoteModel(Base):
    """Database model for votes cast on proposals."""

    __tablename__ = "votes"

    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    proposal_id: Mapped[str] = mapped_column(
        String(80), ForeignKey("proposals.id"), nullable=False, index=True
    )
    # Denormalized for filtering without a join
    proposal_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    voter: Mapped[str] = mapped_column(String(42), nullable=False, index=True)
    support: Mapped[int] = mapped_column(Integer, nullable=False)
    weight: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_hash: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)

    __table_args__ = (
        Index("idx_votes_proposal_timestamp", "proposal_number", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<VoteModel(id={self.id}, proposal={self.proposal_number}, support={self.support})>"


class EmbeddingModel(Base):
    """Database model for per-chunk proposal embeddings."""

    __tablename__ = "embeddings"

    proposal_id: Mapped[str] = mapped_column(
        String(80), ForeignKey("proposals.id"), nullable=False, index=True
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    chunk_text: Mapped[str] = mapped_column(Text, nullable=False)
    # Little-endian float32, 4 bytes per dimension
    embedding: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("proposal_id", "chunk_index", name="pk_embedding_chunk"),
    )

    def __repr__(self) -> str:
        return f"<EmbeddingModel(proposal_id={self.proposal_id}, chunk={self.chunk_index})>"


class SyncMetadataModel(Base):
    """Key/value sync bookkeeping (single ``last_sync`` row)."""

    __tablename__ = "sync_metadata"

    key: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<SyncMetadataModel(key={self.key}, value={self.value})>"
