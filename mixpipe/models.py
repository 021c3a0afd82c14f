"""Records passed between stages and the final reportable result."""

from __future__ import annotations

import typing as t
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

Attribute = t.Tuple[str, str]


@dataclass(frozen=True)
class Datum:
    datum_id: int
    metrics: t.Tuple[float, ...]
    attributes: t.Tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class ScoredDatum:
    datum: Datum
    # membership probability per mixture component
    coefficients: t.Tuple[float, ...]
    log_density: float


@dataclass(frozen=True)
class ClassifiedDatum:
    datum: Datum
    is_outlier: bool
    score: float


class ItemsetResult(BaseModel):
    """Attribute combination over-represented among outliers.

    ``ratio`` is infinite when the itemset never occurs among inliers; JSON
    output spells it as the string ``"Infinity"``.
    """

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="strings")

    items: t.Tuple[Attribute, ...]
    support: float = Field(..., ge=0.0, le=1.0, description="Fraction of outliers containing the itemset.")
    num_records: int = Field(..., ge=0, description="Outliers containing the itemset.")
    ratio: float = Field(..., ge=0.0, description="Outlier rate with the itemset over the rate without it.")


class Summary(BaseModel):
    model_config = ConfigDict(frozen=True)

    num_outliers: int = Field(..., ge=0)
    num_inliers: int = Field(..., ge=0)
    creation_time_ms: int = Field(..., ge=0, description="Time spent inside the summarizer.")
    itemsets: t.Tuple[ItemsetResult, ...] = ()


class AnalysisResult(BaseModel):
    """One per pipeline run; immutable once built."""

    model_config = ConfigDict(frozen=True, ser_json_inf_nan="strings")

    num_outliers: int = Field(..., ge=0)
    num_inliers: int = Field(..., ge=0)
    load_time_ms: int = Field(..., ge=0)
    execute_time_ms: int = Field(..., ge=0)
    summarize_time_ms: int = Field(..., ge=0)
    itemsets: t.Tuple[ItemsetResult, ...] = ()

    @property
    def num_records(self) -> int:
        return self.num_outliers + self.num_inliers
