from uuid import UUID, uuid4

from sqlalchemy import JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from strategy_core.db.base import Base, TimestampMixin


class SavedStrategy(Base, TimestampMixin):
    """Finalized strategy stored as its canonical JSON document."""

    __tablename__ = "strategies"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    pattern: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    instrument: Mapped[str] = mapped_column(String(40), nullable=False)
    document: Mapped[dict] = mapped_column(JSON, default=dict)
    version: Mapped[str] = mapped_column(String(20), nullable=False)
