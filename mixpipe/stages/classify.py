from __future__ import annotations

import json
import os
import typing as t

from mixpipe.conf import PipelineConf
from mixpipe.models import ClassifiedDatum, ScoredDatum
from mixpipe.stages.base import Stage, Stream
from mixpipe.stages.transform import MixtureModel
from mixpipe.utils import get_logger

logger = get_logger(__name__)


class OutlierClassifier(Stage[ClassifiedDatum]):
    pass


class MixtureGroupClassifier(OutlierClassifier):
    """Flags records that mostly belong to the target mixture components.

    Target components come from ``classifier.target_components`` or, when
    unset, are the components whose weight is below
    ``classifier.min_component_weight``.
    """

    def __init__(self, conf: PipelineConf, model: MixtureModel) -> None:
        self.model = model
        self.cutoff = conf.get_float("classifier.probability_cutoff", 0.5)
        self.min_weight = conf.get_float("classifier.min_component_weight", 0.1)
        configured = conf.get("classifier.target_components")
        self._configured = None if configured is None else [int(c) for c in configured]
        self._output: Stream[ClassifiedDatum] = Stream()

    def target_components(self) -> t.List[int]:
        if not self.model.fitted:
            return []
        k = self.model.num_components
        if self._configured is not None:
            out_of_range = [c for c in self._configured if c >= k]
            if out_of_range:
                logger.warning("classifier: ignoring target components %s (model has %d)", out_of_range, k)
            return sorted({c for c in self._configured if c < k})
        weights = self.model.weights
        return [i for i in range(k) if weights[i] < self.min_weight]

    def consume(self, records: t.List[ScoredDatum]) -> None:
        targets = self.target_components()
        n_out = 0
        for sd in records:
            p = sum(sd.coefficients[i] for i in targets)
            is_outlier = bool(targets) and p >= self.cutoff
            n_out += int(is_outlier)
            self._output.put(ClassifiedDatum(datum=sd.datum, is_outlier=is_outlier, score=float(p)))
        logger.info(
            "classifier.mixture_group: outliers=%d inliers=%d targets=%s cutoff=%.2f",
            n_out,
            len(records) - n_out,
            targets,
            self.cutoff,
        )

    def get_stream(self) -> Stream[ClassifiedDatum]:
        return self._output


class DumpClassifier(OutlierClassifier):
    """Pass-through wrapper that also writes the classifications to disk."""

    def __init__(self, conf: PipelineConf, inner: OutlierClassifier, query_name: str) -> None:
        self.inner = inner
        self.query_name = query_name
        self.dump_dir = conf.get_string("classifier.dump_dir", "dumps")
        self.paths: t.List[str] = []
        self._dumped = False

    def initialize(self) -> None:
        self.inner.initialize()

    def consume(self, records: t.List[ScoredDatum]) -> None:
        self.inner.consume(records)

    def _write(self, suffix: str, records: t.List[ClassifiedDatum]) -> str:
        path = os.path.join(self.dump_dir, f"{self.query_name}-{suffix}.jsonl")
        with open(path, "w", encoding="utf-8") as f:
            for r in records:
                row = {
                    "datum_id": r.datum.datum_id,
                    "score": r.score,
                    "metrics": list(r.datum.metrics),
                    "attributes": dict(r.datum.attributes),
                }
                f.write(json.dumps(row, ensure_ascii=False) + "\n")
        return path

    def get_stream(self) -> Stream[ClassifiedDatum]:
        # dump files describe the first drain only
        if self._dumped:
            return self.inner.get_stream()
        records = self.inner.get_stream().drain()
        self._dumped = True
        os.makedirs(self.dump_dir, exist_ok=True)
        self.paths = [
            self._write("outliers", [r for r in records if r.is_outlier]),
            self._write("inliers", [r for r in records if not r.is_outlier]),
        ]
        logger.info("classifier.dump: wrote %s records=%d", ", ".join(self.paths), len(records))
        return Stream(records)
