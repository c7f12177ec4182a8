"""
Result sinks for benchmark runs.

Provides CLI tables, charts, spreadsheets, JSON exports and database
persistence. Every sink receives the run container read-only: first once per
finished configuration, then once for the finished run.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Sequence

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from persistence.crud import save_aggregates
from persistence.session import init_db, make_engine, make_session_factory
from scenarios.definitions import sanitize_name

from .driver import TimingRecord
from .errors import ExportError
from .runner import RunContainer

logger = logging.getLogger(__name__)

DEFAULT_WIDTH_IN = 19.2
DEFAULT_HEIGHT_IN = 10.8
DPI = 100

EXPORT_HEADER = [
    "Iteration",
    "Test Case",
    "Preparation Time (ms)",
    "Execution Time (ms)",
    "Request String",
    "Response String",
]

EXPORT_HEADER_AGGREGATES = [
    "Test Case",
    "Minimum Time (ms)",
    "Maximum Time (ms)",
    "Average Time (ms)",
    "Median Time (ms)",
]


class ResultReporter:
    """Base sink writing into <output_dir>/<run id>/; both hooks default to no-ops."""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = output_dir or Path("results")

    def run_dir(self, container: RunContainer) -> Path:
        path = self.output_dir / container.run_id
        path.mkdir(parents=True, exist_ok=True)
        return path

    def configuration_finished(self, container: RunContainer, name: str, records: Sequence[TimingRecord]) -> None:
        pass

    def run_finished(self, container: RunContainer) -> None:
        pass


class ConsoleReporter(ResultReporter):
    """Generates console/CLI reports."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def _color(self, text: str, color: str) -> str:
        """Apply ANSI color if enabled."""
        if not self.use_color:
            return text

        colors = {
            "green": "\033[92m",
            "red": "\033[91m",
            "yellow": "\033[93m",
            "blue": "\033[94m",
            "bold": "\033[1m",
            "reset": "\033[0m",
        }

        return f"{colors.get(color, '')}{text}{colors['reset']}"

    def format_duration(self, ms: float) -> str:
        """Format duration for display."""
        if ms < 1:
            return f"{ms * 1000:.1f}us"
        if ms < 1000:
            return f"{ms:.2f}ms"
        return f"{ms / 1000:.2f}s"

    def comparison_table(self, container: RunContainer) -> str:
        """Generate a comparison table of every configuration's aggregates."""
        if not container.aggregate_data:
            return "No results to display"

        headers = ["Test Case", "Min", "Max", "Avg", "Median", "Prep avg"]
        col_widths = [32, 12, 12, 12, 12, 12]

        lines = []
        lines.append(self._color(f"\n{'=' * sum(col_widths)}", "blue"))
        lines.append(self._color(
            f"Run {container.run_id} (index={container.index_type.value}, "
            f"reuse={container.reuse_existing_policies}, "
            f"{container.iterations}x{container.runs} decisions per test case)",
            "bold",
        ))
        lines.append(self._color(f"{'=' * sum(col_widths)}", "blue"))

        header_row = ""
        for i, header in enumerate(headers):
            header_row += f"{header:<{col_widths[i]}}"
        lines.append(self._color(header_row, "bold"))
        lines.append("-" * sum(col_widths))

        for aggregate in container.aggregate_data:
            preparations = [r.preparation_ms for r in container.records_for(aggregate.name)]
            prep_avg = sum(preparations) / len(preparations) if preparations else 0.0

            name = aggregate.name[:29] + "..." if len(aggregate.name) > 32 else aggregate.name
            row = [f"{name:<{col_widths[0]}}"]
            for i, value in enumerate((aggregate.min, aggregate.max, aggregate.avg, aggregate.mdn, prep_avg), start=1):
                row.append(f"{self.format_duration(value):<{col_widths[i]}}")
            lines.append("".join(row))

        return "\n".join(lines)

    def run_finished(self, container: RunContainer) -> None:
        print(self.comparison_table(container))


class ChartReporter(ResultReporter):
    """Generates evaluation-time and aggregate charts using matplotlib."""

    def _save(self, fig, filepath: Path) -> Path:
        try:
            fig.savefig(filepath, dpi=DPI, bbox_inches="tight")
        finally:
            plt.close(fig)
        return filepath

    def evaluation_time_chart(self, container: RunContainer, name: str, durations: Sequence[float]) -> Path:
        """Plot one configuration's execution durations by run number."""
        fig, ax = plt.subplots(figsize=(DEFAULT_WIDTH_IN, DEFAULT_HEIGHT_IN))
        ax.plot(range(len(durations)), durations, label=name)
        ax.set_title("Evaluation Time")
        ax.set_xlabel("Run")
        ax.set_ylabel("ms")
        ax.legend()
        return self._save(fig, self.run_dir(container) / f"{sanitize_name(name)}.png")

    def overview_chart(self, container: RunContainer, filename: str = "overview.png") -> Path:
        """Plot every configuration's execution durations on one chart."""
        fig, ax = plt.subplots(figsize=(DEFAULT_WIDTH_IN, DEFAULT_HEIGHT_IN))
        for name, durations in container.execution_series().items():
            ax.plot(range(len(durations)), durations, label=name)
        ax.set_title("Evaluation Time")
        ax.set_xlabel("Run")
        ax.set_ylabel("ms")
        ax.legend()
        return self._save(fig, self.run_dir(container) / filename)

    def aggregate_chart(self, container: RunContainer, filename: str = "histogram.png") -> Path:
        """Grouped bar chart of min / max / avg / mdn per configuration."""
        names = list(container.identifiers)
        series = {
            "min": container.min_values,
            "max": container.max_values,
            "avg": container.avg_values,
            "mdn": container.mdn_values,
        }

        x = np.arange(len(names))
        width = 0.2

        fig, ax = plt.subplots(figsize=(DEFAULT_WIDTH_IN, DEFAULT_HEIGHT_IN))
        for offset, (label, values) in enumerate(series.items()):
            ax.bar(x + (offset - 1.5) * width, values, width, label=label)

        ax.set_title("Aggregates")
        ax.set_xlabel("Run")
        ax.set_ylabel("ms")
        ax.set_xticks(x)
        ax.set_xticklabels(names, rotation=45, ha="right")
        ax.legend()
        fig.tight_layout()
        return self._save(fig, self.run_dir(container) / filename)

    def configuration_finished(self, container: RunContainer, name: str, records: Sequence[TimingRecord]) -> None:
        self.evaluation_time_chart(container, name, [r.duration_ms for r in records])

    def run_finished(self, container: RunContainer) -> None:
        self.overview_chart(container)
        self.aggregate_chart(container)


class SpreadsheetReporter(ResultReporter):
    """Exports raw and aggregate records as CSV and Excel sheets using pandas."""

    def records_frame(self, container: RunContainer) -> pd.DataFrame:
        rows = [
            (r.number, r.name, r.preparation_ms, r.duration_ms, r.request, r.response)
            for r in container.data
        ]
        return pd.DataFrame(rows, columns=EXPORT_HEADER)

    def aggregates_frame(self, container: RunContainer) -> pd.DataFrame:
        rows = [(a.name, a.min, a.max, a.avg, a.mdn) for a in container.aggregate_data]
        return pd.DataFrame(rows, columns=EXPORT_HEADER_AGGREGATES)

    def run_finished(self, container: RunContainer) -> None:
        run_dir = self.run_dir(container)
        records = self.records_frame(container)
        aggregates = self.aggregates_frame(container)
        records.to_csv(run_dir / "overview.csv", index=False)
        aggregates.to_csv(run_dir / "histogram.csv", index=False)
        records.to_excel(run_dir / "overview.xlsx", sheet_name="Overview", index=False, engine="openpyxl")
        aggregates.to_excel(run_dir / "histogram.xlsx", sheet_name="Histogram", index=False, engine="openpyxl")


class JSONReporter(ResultReporter):
    """Exports the whole run as JSON for further analysis."""

    filename = "results.json"

    def save_result(self, container: RunContainer) -> Path:
        filepath = self.run_dir(container) / self.filename
        with open(filepath, "w") as f:
            json.dump(container.to_dict(), f, indent=2)
        return filepath

    def load_result(self, filepath: Path) -> dict:
        """Load a result from JSON."""
        with open(filepath) as f:
            return json.load(f)

    def run_finished(self, container: RunContainer) -> None:
        self.save_result(container)


class DatabaseReporter(ResultReporter):
    """Persists one row per aggregate record."""

    def __init__(self, database_url: str):
        super().__init__()
        self.database_url = database_url

    def run_finished(self, container: RunContainer) -> None:
        try:
            engine = make_engine(self.database_url)
            try:
                init_db(engine)
                db = make_session_factory(engine)()
                try:
                    rows = save_aggregates(db, container)
                finally:
                    db.close()
            finally:
                engine.dispose()
        except SQLAlchemyError as e:
            raise ExportError(f"cannot persist aggregates: {e}", phase="persist") from e
        logger.info("persisted %d aggregate rows for run %s", len(rows), container.run_id)
