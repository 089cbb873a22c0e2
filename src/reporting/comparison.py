"""
Cross-variant comparison of fitted churn models.

One row per fitted variant, in fit order. Rows are never edited or
re-sorted after they are appended, so the table also documents the order
in which modeling decisions were taken.
"""

from dataclasses import dataclass, asdict
from typing import Iterator, List, Tuple

import numpy as np
import pandas as pd

from src.inference.diagnostics import DiagnosticRecord


@dataclass(frozen=True)
class ComparisonRow:
    """Model-level summary of one variant."""

    variant: str
    sampling_time: float
    n_divergences: int
    n_max_treedepth: int
    elpd_loo: float
    elpd_loo_se: float
    p_loo: float
    looic: float
    mean_ess_bulk: float
    mean_r_hat: float
    n_coefficients: int

    @classmethod
    def from_record(cls, record: DiagnosticRecord) -> "ComparisonRow":
        """Summarize a record; ESS and R-hat are averaged over beta[...] only."""
        coefs = record.coefficients()
        if not coefs:
            raise ValueError(f"Record '{record.variant_name}' has no beta[...] entries")
        return cls(
            variant=record.variant_name,
            sampling_time=record.sampling_time,
            n_divergences=record.n_divergences,
            n_max_treedepth=record.n_max_treedepth,
            elpd_loo=record.elpd_loo,
            elpd_loo_se=record.elpd_loo_se,
            p_loo=record.p_loo,
            looic=record.looic,
            mean_ess_bulk=float(np.mean([p.ess_bulk for p in coefs])),
            mean_r_hat=float(np.mean([p.r_hat for p in coefs])),
            n_coefficients=len(coefs),
        )


class ComparisonTable:
    """Append-only sequence of ComparisonRow."""

    def __init__(self) -> None:
        self._rows: List[ComparisonRow] = []

    def append(self, row: ComparisonRow) -> None:
        if any(r.variant == row.variant for r in self._rows):
            raise ValueError(f"Variant '{row.variant}' is already in the comparison table")
        self._rows.append(row)

    def append_record(self, record: DiagnosticRecord) -> ComparisonRow:
        row = ComparisonRow.from_record(record)
        self.append(row)
        return row

    @property
    def rows(self) -> Tuple[ComparisonRow, ...]:
        return tuple(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[ComparisonRow]:
        return iter(tuple(self._rows))

    def to_frame(self) -> pd.DataFrame:
        columns = list(ComparisonRow.__dataclass_fields__)
        return pd.DataFrame([asdict(r) for r in self._rows], columns=columns)

    def to_csv(self, path: str) -> str:
        self.to_frame().to_csv(path, index=False, float_format="%.4f")
        return path

    def __repr__(self) -> str:
        return f"ComparisonTable(variants={[r.variant for r in self._rows]})"


def unreliable_predictors(record: DiagnosticRecord) -> List[str]:
    """
    Predictors whose posterior sd exceeds the absolute posterior mean.

    This is the heuristic used to choose which predictors the simplified
    variant drops. It is a modeling judgement call, not a variable-selection
    rule: it ignores credible intervals and depends on the predictor scale.
    """
    flagged = []
    for p in record.coefficients():
        if p.sd > abs(p.mean):
            flagged.append(p.name[len("beta["):-1])
    return flagged


def format_record(record: DiagnosticRecord) -> str:
    """Printable per-parameter table followed by model scalars."""
    frame = record.to_frame()[["mean", "sd", "hdi_low", "hdi_high", "ess_bulk", "ess_tail", "r_hat"]]
    lines = [
        f"=== {record.variant_name} ===",
        frame.to_string(float_format=lambda v: f"{v:.3f}"),
        (
            f"elpd_loo={record.elpd_loo:.2f} (se {record.elpd_loo_se:.2f})  "
            f"p_loo={record.p_loo:.2f}  looic={record.looic:.2f}"
        ),
        (
            f"divergences={record.n_divergences}  max_treedepth_hits={record.n_max_treedepth}  "
            f"pareto_k>0.7={record.n_high_pareto_k}  time={record.sampling_time:.1f}s"
        ),
    ]
    return "\n".join(lines)


def format_table(table: ComparisonTable) -> str:
    """Printable comparison table."""
    if len(table) == 0:
        return "(no variants fitted)"
    return table.to_frame().to_string(index=False, float_format=lambda v: f"{v:.3f}")
