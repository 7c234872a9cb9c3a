"""SQLAlchemy async database models for LiftMetrics.

``records`` holds the raw OpenIPF rows; every other table is derived from it
by the metrics pipeline and keyed by its natural key so recomputation can
upsert in place.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import Float, Index, Integer, PrimaryKeyConstraint, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class RecordModel(Base):
    """One competition result from the bulk CSV."""

    __tablename__ = "records"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # Athlete
    name: Mapped[str] = mapped_column(Text, nullable=False)
    sex: Mapped[str] = mapped_column(Text, nullable=False, default="")
    event: Mapped[str] = mapped_column(Text, nullable=False, default="")
    equipment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    age: Mapped[float | None] = mapped_column(Float)
    age_class: Mapped[str] = mapped_column(Text, nullable=False, default="")
    birth_year_class: Mapped[str] = mapped_column(Text, nullable=False, default="")
    division: Mapped[str] = mapped_column(Text, nullable=False, default="")
    bodyweight_kg: Mapped[float | None] = mapped_column(Float)
    weight_class_kg: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Attempts (negative = failed, zero = not attempted)
    squat1_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    squat2_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    squat3_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    squat4_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    best3_squat_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bench1_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bench2_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bench3_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bench4_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    best3_bench_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deadlift1_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deadlift2_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deadlift3_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deadlift4_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    best3_deadlift_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_kg: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Placing and scoring
    place: Mapped[str] = mapped_column(Text, nullable=False, default="")
    dots: Mapped[float | None] = mapped_column(Float)
    wilks: Mapped[float | None] = mapped_column(Float)
    glossbrenner: Mapped[float | None] = mapped_column(Float)
    goodlift: Mapped[float | None] = mapped_column(Float)
    tested: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Athlete origin and federation
    country: Mapped[str] = mapped_column(Text, nullable=False, default="")
    state: Mapped[str] = mapped_column(Text, nullable=False, default="")
    federation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    parent_federation: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Meet
    date: Mapped[str] = mapped_column(Text, nullable=False, default="")  # ISO YYYY-MM-DD
    meet_country: Mapped[str] = mapped_column(Text, nullable=False, default="")
    meet_state: Mapped[str] = mapped_column(Text, nullable=False, default="")
    meet_town: Mapped[str] = mapped_column(Text, nullable=False, default="")
    meet_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sanctioned: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (Index("idx_records_name_date", "name", "date"),)

    def __repr__(self) -> str:
        return f"<RecordModel(name={self.name!r}, date={self.date!r}, event={self.event!r})>"


class LifterMetricModel(Base):
    """Per-record attempt statistics (counts, percentages, kg deltas)."""

    __tablename__ = "lifter_metrics"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[str] = mapped_column(Text, nullable=False)
    equipment: Mapped[str] = mapped_column(Text, nullable=False)

    successful_squat_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_bench_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_deadlift_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_successful_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    squat1_perc: Mapped[float | None] = mapped_column(Float)
    squat2_perc: Mapped[float | None] = mapped_column(Float)
    squat3_perc: Mapped[float | None] = mapped_column(Float)
    bench1_perc: Mapped[float | None] = mapped_column(Float)
    bench2_perc: Mapped[float | None] = mapped_column(Float)
    bench3_perc: Mapped[float | None] = mapped_column(Float)
    deadlift1_perc: Mapped[float | None] = mapped_column(Float)
    deadlift2_perc: Mapped[float | None] = mapped_column(Float)
    deadlift3_perc: Mapped[float | None] = mapped_column(Float)

    squat1_to2_kg: Mapped[float | None] = mapped_column(Float)
    squat2_to3_kg: Mapped[float | None] = mapped_column(Float)
    bench1_to2_kg: Mapped[float | None] = mapped_column(Float)
    bench2_to3_kg: Mapped[float | None] = mapped_column(Float)
    deadlift1_to2_kg: Mapped[float | None] = mapped_column(Float)
    deadlift2_to3_kg: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (
        PrimaryKeyConstraint("id", "date", "equipment"),
        Index("idx_lifter_metrics_name_date", "name", "date"),
    )


class MaxLiftModel(Base):
    """Best-lift snapshot per record; bench-only events leave squat/deadlift NULL."""

    __tablename__ = "max_lifts"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[str] = mapped_column(Text, nullable=False)
    meet_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    equipment: Mapped[str] = mapped_column(Text, nullable=False)
    event: Mapped[str] = mapped_column(Text, nullable=False)
    best3_squat_kg: Mapped[float | None] = mapped_column(Float)
    best3_bench_kg: Mapped[float | None] = mapped_column(Float)
    best3_deadlift_kg: Mapped[float | None] = mapped_column(Float)
    total_kg: Mapped[float | None] = mapped_column(Float)


class AggregatedMetricSBDModel(Base):
    """Lifetime averages per athlete over full-power (SBD) meets."""

    __tablename__ = "aggregated_metrics_sbd"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    equipment: Mapped[str] = mapped_column(Text, nullable=False)

    avg_successful_squat_attempts: Mapped[float | None] = mapped_column(Float)
    avg_successful_bench_attempts: Mapped[float | None] = mapped_column(Float)
    avg_successful_deadlift_attempts: Mapped[float | None] = mapped_column(Float)
    avg_total_successful_attempts: Mapped[float | None] = mapped_column(Float)

    avg_squat1_perc: Mapped[float | None] = mapped_column(Float)
    avg_squat2_perc: Mapped[float | None] = mapped_column(Float)
    avg_squat3_perc: Mapped[float | None] = mapped_column(Float)
    avg_bench1_perc: Mapped[float | None] = mapped_column(Float)
    avg_bench2_perc: Mapped[float | None] = mapped_column(Float)
    avg_bench3_perc: Mapped[float | None] = mapped_column(Float)
    avg_deadlift1_perc: Mapped[float | None] = mapped_column(Float)
    avg_deadlift2_perc: Mapped[float | None] = mapped_column(Float)
    avg_deadlift3_perc: Mapped[float | None] = mapped_column(Float)

    avg_squat1_to2_kg: Mapped[float | None] = mapped_column(Float)
    avg_squat2_to3_kg: Mapped[float | None] = mapped_column(Float)
    avg_bench1_to2_kg: Mapped[float | None] = mapped_column(Float)
    avg_bench2_to3_kg: Mapped[float | None] = mapped_column(Float)
    avg_deadlift1_to2_kg: Mapped[float | None] = mapped_column(Float)
    avg_deadlift2_to3_kg: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (PrimaryKeyConstraint("name", "equipment"),)


class AggregatedMetricBenchModel(Base):
    """Lifetime averages per athlete over bench-only (B) meets."""

    __tablename__ = "aggregated_metrics_bench"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    equipment: Mapped[str] = mapped_column(Text, nullable=False)

    avg_successful_bench_attempts: Mapped[float | None] = mapped_column(Float)
    avg_bench1_perc: Mapped[float | None] = mapped_column(Float)
    avg_bench2_perc: Mapped[float | None] = mapped_column(Float)
    avg_bench3_perc: Mapped[float | None] = mapped_column(Float)
    avg_bench1_to2_kg: Mapped[float | None] = mapped_column(Float)
    avg_bench2_to3_kg: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (PrimaryKeyConstraint("name", "equipment"),)


class WeightClassDistributionModel(Base):
    """Distinct athletes per (weight class, sex)."""

    __tablename__ = "weight_class_distribution"

    weight_class: Mapped[str] = mapped_column(Text, nullable=False)
    sex: Mapped[str] = mapped_column(Text, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (PrimaryKeyConstraint("weight_class", "sex"),)


class AgeGroupPerformanceModel(Base):
    """Average best lifts and total per (age class, sex)."""

    __tablename__ = "age_group_performance"

    age_class: Mapped[str] = mapped_column(Text, nullable=False)
    sex: Mapped[str] = mapped_column(Text, nullable=False)
    avg_squat: Mapped[float | None] = mapped_column(Float)
    avg_bench: Mapped[float | None] = mapped_column(Float)
    avg_deadlift: Mapped[float | None] = mapped_column(Float)
    avg_total: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (PrimaryKeyConstraint("age_class", "sex"),)


class PerformanceTrendModel(Base):
    """Average best lifts and total per (meet year, sex)."""

    __tablename__ = "performance_trends"

    year: Mapped[int] = mapped_column(Integer, nullable=False)
    sex: Mapped[str] = mapped_column(Text, nullable=False)
    avg_squat: Mapped[float | None] = mapped_column(Float)
    avg_bench: Mapped[float | None] = mapped_column(Float)
    avg_deadlift: Mapped[float | None] = mapped_column(Float)
    avg_total: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (PrimaryKeyConstraint("year", "sex"),)

