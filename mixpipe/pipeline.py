"""Batch mixture-model pipeline: load, score, classify, summarize.

Each stage fully drains before the next one starts, so the timings below
measure well-defined phases:

- ``load_time_ms``: ingestion only
- ``summarize_time_ms``: reported by the summarizer itself
- ``execute_time_ms``: everything after loading except summarization
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from mixpipe.conf import CLASSIFIER_DUMP, PipelineConf
from mixpipe.errors import ConfigurationError, PipelineInvariantError
from mixpipe.models import AnalysisResult, Summary
from mixpipe.stages.classify import DumpClassifier, MixtureGroupClassifier, OutlierClassifier
from mixpipe.stages.ingest import construct_ingester
from mixpipe.stages.summarize import BatchSummarizer
from mixpipe.stages.transform import BatchMixtureCoeffTransform, GridDumpingBatchScoreTransform
from mixpipe.utils import get_logger, monotonic_ms


def tuples_per_second(num_tuples: int, total_ms: int) -> Optional[float]:
    """Throughput over ``total_ms``; ``None`` when the run was too fast to measure."""
    if total_ms <= 0:
        return None
    return num_tuples / float(total_ms) * 1000


class BasePipeline:
    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.conf: Optional[PipelineConf] = None
        self.log = logger or get_logger(__name__)
        self.clock = clock

    def initialize(self, conf: PipelineConf) -> "BasePipeline":
        self.conf = conf
        return self

    def _now_ms(self) -> int:
        return monotonic_ms(self.clock)

    def run(self) -> List[AnalysisResult]:
        raise NotImplementedError


class MixtureModelPipeline(BasePipeline):
    def initialize(self, conf: PipelineConf) -> "MixtureModelPipeline":
        super().initialize(conf)
        conf.sanity_check_batch()
        return self

    def _classifier_output(self, classifier: OutlierClassifier) -> OutlierClassifier:
        if not self.conf.get_bool(CLASSIFIER_DUMP):
            return classifier
        return DumpClassifier(self.conf, classifier, self.conf.query_name)

    def run(self) -> List[AnalysisResult]:
        conf = self.conf
        if conf is None:
            raise ConfigurationError("pipeline must be initialized before run()")

        start_ms = self._now_ms()
        ingester = construct_ingester(conf)
        data = ingester.get_stream().drain()
        load_end_ms = self._now_ms()

        mixture_transform = BatchMixtureCoeffTransform(conf, conf.transform_type)
        grid_transform = GridDumpingBatchScoreTransform(conf, mixture_transform)
        grid_transform.initialize()
        grid_transform.consume(data)

        classifier = MixtureGroupClassifier(conf, mixture_transform.get_mixture_model())
        classifier.consume(grid_transform.get_stream().drain())
        classified = self._classifier_output(classifier).get_stream().drain()

        summarizer = BatchSummarizer(conf, clock=self.clock)
        summarizer.consume(classified)
        summaries = summarizer.get_stream().drain()
        if len(summaries) != 1:
            raise PipelineInvariantError(f"summarizer produced {len(summaries)} summaries, expected exactly 1")
        result: Summary = summaries[0]

        end_ms = self._now_ms()
        load_ms = load_end_ms - start_ms
        total_ms = end_ms - load_end_ms
        summarize_ms = result.creation_time_ms
        execute_ms = total_ms - summarize_ms

        tps = tuples_per_second(result.num_inliers + result.num_outliers, total_ms)
        self.log.info("took %dms (%s tuples/sec)", total_ms, "unmeasured" if tps is None else f"{tps:.2f}")

        return [
            AnalysisResult(
                num_outliers=result.num_outliers,
                num_inliers=result.num_inliers,
                load_time_ms=load_ms,
                execute_time_ms=execute_ms,
                summarize_time_ms=summarize_ms,
                itemsets=result.itemsets,
            )
        ]
