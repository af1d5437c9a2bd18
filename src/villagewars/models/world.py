"""Tables holding serialized world snapshots and the tick log."""

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, utc_now


class WorldSnapshot(Base, TimestampMixin):
    """Latest serialized state of one world.

    Attributes:
        id: World identifier (matches ``World.id``)
        name: World name, duplicated for listing without deserializing
        tick_count: Tick counter at the time of the snapshot
        last_tick_at: When the world was last ticked
        payload: JSON document produced by the world TypeAdapter
    """

    __tablename__ = "world_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    tick_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_tick_at: Mapped[datetime | None] = mapped_column(nullable=True)
    payload: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    tick_log: Mapped[list["TickLogEntry"]] = relationship(
        "TickLogEntry", back_populates="world", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<WorldSnapshot(id={self.id}, name='{self.name}', tick={self.tick_count})>"


class TickLogEntry(Base):
    """Audit row written for every tick the SQL store persists.

    Attributes:
        world_id: World that was ticked
        tick: Tick number after the tick ran
        ran_at: Game time the tick advanced to
        summary: JSON text with the per-step counts
    """

    __tablename__ = "tick_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    world_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("world_snapshots.id", ondelete="CASCADE"), nullable=False
    )
    tick: Mapped[int] = mapped_column(Integer, nullable=False)
    ran_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    world: Mapped["WorldSnapshot"] = relationship("WorldSnapshot", back_populates="tick_log")

    __table_args__ = (Index("idx_tick_log_world_tick", "world_id", "tick"),)

    def __repr__(self) -> str:
        return f"<TickLogEntry(world_id={self.world_id}, tick={self.tick})>"
