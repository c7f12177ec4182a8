"""SQLAlchemy ORM models for benchmark results."""

from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Boolean,
    DateTime,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BenchmarkResult(Base):
    """One aggregate row: a configuration's statistics plus run metadata."""

    __tablename__ = "benchmark_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(64), nullable=False, index=True)
    index_type = Column(String(20), nullable=False, index=True)
    reuse_existing_policies = Column(Boolean, nullable=False, default=True)
    iterations = Column(Integer, nullable=False)
    runs = Column(Integer, nullable=False)
    name = Column(String(200), nullable=False)
    min = Column(Float, nullable=False)
    max = Column(Float, nullable=False)
    avg = Column(Float, nullable=False)
    mdn = Column(Float, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary for reporting."""
        return {
            "run_id": self.run_id,
            "index_type": self.index_type,
            "reuse_existing_policies": self.reuse_existing_policies,
            "iterations": self.iterations,
            "runs": self.runs,
            "name": self.name,
            "min": self.min,
            "max": self.max,
            "avg": self.avg,
            "mdn": self.mdn,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
