"""CRUD operations for benchmark results."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy.orm import Session

from persistence.models import BenchmarkResult

if TYPE_CHECKING:
    from harness.runner import RunContainer


def save_aggregates(db: Session, container: "RunContainer") -> list[BenchmarkResult]:
    """Store one row per aggregate record of a finished run."""
    rows = [
        BenchmarkResult(
            run_id=container.run_id,
            index_type=container.index_type.value,
            reuse_existing_policies=container.reuse_existing_policies,
            iterations=container.iterations,
            runs=container.runs,
            name=aggregate.name,
            min=aggregate.min,
            max=aggregate.max,
            avg=aggregate.avg,
            mdn=aggregate.mdn,
            created_at=datetime.utcnow(),
        )
        for aggregate in container.aggregate_data
    ]
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)
    return rows


def get_results(
    db: Session,
    run_id: Optional[str] = None,
    index_type: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[BenchmarkResult]:
    """Get stored results with optional run / index filters, in insertion order."""
    query = db.query(BenchmarkResult)

    if run_id:
        query = query.filter(BenchmarkResult.run_id == run_id)
    if index_type:
        query = query.filter(BenchmarkResult.index_type == index_type)

    return query.order_by(BenchmarkResult.id).offset(skip).limit(limit).all()


def get_run_ids(db: Session) -> list[str]:
    """Distinct run ids, oldest first."""
    rows = (
        db.query(BenchmarkResult.run_id)
        .group_by(BenchmarkResult.run_id)
        .order_by(BenchmarkResult.run_id)
        .all()
    )
    return [row[0] for row in rows]


def delete_run(db: Session, run_id: str) -> int:
    """Delete every row of a run; returns the number of rows removed."""
    deleted = db.query(BenchmarkResult).filter(BenchmarkResult.run_id == run_id).delete()
    db.commit()
    return deleted
