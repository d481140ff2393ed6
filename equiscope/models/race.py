"""Models for meetings, races, runners and horses.

Provider sub-resources (pronostic, odds, notes, ...) are stored verbatim as
JSON text and decoded by ``equiscope.racing.aggregate`` on read.
"""

import json
from datetime import date, datetime
from typing import Any, List, Optional

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from equiscope.config import paris_now_naive
from equiscope.models.database import Base


class Meeting(Base):
    """A race meeting (réunion) at a venue on a specific date."""

    __tablename__ = "meetings"
    __table_args__ = (Index("ix_meetings_date", "date"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True)  # "20251212_R4"
    date: Mapped[date] = mapped_column(Date)
    number: Mapped[int] = mapped_column(Integer)
    venue: Mapped[str] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=paris_now_naive)

    races: Mapped[List["Race"]] = relationship(
        "Race", back_populates="meeting", cascade="all, delete-orphan"
    )


class Race(Base):
    """A single race within a meeting, keyed by its GUID."""

    __tablename__ = "races"
    __table_args__ = (Index("ix_races_meeting_id", "meeting_id"),)

    guid: Mapped[str] = mapped_column(String(32), primary_key=True)  # "20251212_R4_C1"
    meeting_id: Mapped[str] = mapped_column(String(32), ForeignKey("meetings.id"))
    race_number: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(200))
    distance: Mapped[int] = mapped_column(Integer, default=0)  # metres
    ground: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    discipline: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    start_time: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # "13:50"
    prize: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Provider sub-resources (JSON)
    pronostic_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pari_simple_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    interviews_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tracking_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notule_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    references_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=paris_now_naive)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=paris_now_naive, onupdate=paris_now_naive
    )

    meeting: Mapped["Meeting"] = relationship("Meeting", back_populates="races")
    runners: Mapped[List["Runner"]] = relationship(
        "Runner", back_populates="race", cascade="all, delete-orphan",
        order_by="Runner.number",
    )

    def set_blob(self, name: str, value: Any) -> None:
        """Store a provider sub-resource, e.g. ``race.set_blob("notes", [...])``."""
        setattr(self, f"{name}_json", json.dumps(value) if value is not None else None)


class Horse(Base):
    """A horse, keyed by its slug."""

    __tablename__ = "horses"

    slug: Mapped[str] = mapped_column(String(100), primary_key=True)
    uuid: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    sex: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    earnings: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    form: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)  # musique

    history_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stats_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    jockey_form: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    trainer_form: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=paris_now_naive, onupdate=paris_now_naive
    )

    @property
    def history(self) -> Any:
        if self.history_json:
            return json.loads(self.history_json)
        return None

    @history.setter
    def history(self, value: Any):
        self.history_json = json.dumps(value) if value is not None else None

    @property
    def stats(self) -> Any:
        if self.stats_json:
            return json.loads(self.stats_json)
        return None

    @stats.setter
    def stats(self, value: Any):
        self.stats_json = json.dumps(value) if value is not None else None


class Runner(Base):
    """One entrant (partant) in a race."""

    __tablename__ = "runners"
    __table_args__ = (
        Index("ix_runners_race_guid", "race_guid"),
        Index("ix_runners_horse_slug", "horse_slug"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    race_guid: Mapped[str] = mapped_column(String(32), ForeignKey("races.guid"))
    horse_slug: Mapped[str] = mapped_column(String(100), ForeignKey("horses.slug"))
    number: Mapped[int] = mapped_column(Integer)
    jockey: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    trainer: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    gate: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # corde
    current_odds: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    race: Mapped["Race"] = relationship("Race", back_populates="runners")
    horse: Mapped["Horse"] = relationship("Horse", lazy="joined")
