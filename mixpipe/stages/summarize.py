from __future__ import annotations

import math
import time
import typing as t
from collections import Counter

from mixpipe.conf import PipelineConf
from mixpipe.models import Attribute, ClassifiedDatum, ItemsetResult, Summary
from mixpipe.stages.base import Stage, Stream
from mixpipe.utils import get_logger, monotonic_ms

logger = get_logger(__name__)

Itemset = t.FrozenSet[Attribute]


def risk_ratio(exposed_out: int, exposed_in: int, total_out: int, total_in: int) -> float:
    """Outlier rate among records with the itemset over the rate among those without."""
    exposed = exposed_out + exposed_in
    unexposed = total_out + total_in - exposed
    if exposed == 0 or unexposed == 0:
        return 0.0
    unexposed_out = total_out - exposed_out
    if unexposed_out == 0:
        return math.inf
    return (exposed_out / exposed) / (unexposed_out / unexposed)


def _next_candidates(level: t.Iterable[Itemset], size: int) -> t.Set[Itemset]:
    prev = list(level)
    known = set(prev)
    out: t.Set[Itemset] = set()
    for i, a in enumerate(prev):
        for b in prev[i + 1:]:
            u = a | b
            if len(u) == size and all((u - {x}) in known for x in u):
                out.add(u)
    return out


def frequent_itemsets(transactions: t.List[Itemset], min_count: int, max_size: int) -> t.Dict[Itemset, int]:
    counts = Counter(item for tx in transactions for item in tx)
    level = {frozenset([i]): c for i, c in counts.items() if c >= min_count}
    found: t.Dict[Itemset, int] = {}
    size = 1
    while level:
        found.update(level)
        if size >= max_size:
            break
        size += 1
        candidates = _next_candidates(level, size)
        level_counts: t.Counter[Itemset] = Counter()
        for tx in transactions:
            for c in candidates:
                if c <= tx:
                    level_counts[c] += 1
        level = {c: n for c, n in level_counts.items() if n >= min_count}
    return found


def mine_itemsets(
    outliers: t.List[Itemset],
    inliers: t.List[Itemset],
    *,
    min_support: float = 0.01,
    min_ratio: float = 3.0,
    max_size: int = 3,
) -> t.List[ItemsetResult]:
    if not outliers:
        return []
    min_count = max(1, math.ceil(min_support * len(outliers)))
    frequent = frequent_itemsets(outliers, min_count, max_size)

    results: t.List[ItemsetResult] = []
    for items, n_out in frequent.items():
        n_in = sum(1 for tx in inliers if items <= tx)
        ratio = risk_ratio(n_out, n_in, len(outliers), len(inliers))
        if ratio < min_ratio:
            continue
        results.append(
            ItemsetResult(
                items=tuple(sorted(items)),
                support=n_out / len(outliers),
                num_records=n_out,
                ratio=ratio,
            )
        )
    results.sort(key=lambda r: (-r.ratio, -r.support, r.items))
    return results


class BatchSummarizer(Stage[Summary]):
    """Explains the classified batch as attribute itemsets. Emits one Summary per batch."""

    def __init__(self, conf: PipelineConf, clock: t.Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self.min_support = conf.get_float("summarizer.min_support", 0.01)
        self.min_ratio = conf.get_float("summarizer.min_ratio", 3.0)
        self.max_size = conf.get_int("summarizer.max_itemset_size", 3)
        self._output: Stream[Summary] = Stream()

    def consume(self, records: t.List[ClassifiedDatum]) -> None:
        start_ms = monotonic_ms(self.clock)
        outliers = [frozenset(r.datum.attributes) for r in records if r.is_outlier]
        inliers = [frozenset(r.datum.attributes) for r in records if not r.is_outlier]
        itemsets = mine_itemsets(
            outliers,
            inliers,
            min_support=self.min_support,
            min_ratio=self.min_ratio,
            max_size=self.max_size,
        )
        summary = Summary(
            num_outliers=len(outliers),
            num_inliers=len(inliers),
            creation_time_ms=monotonic_ms(self.clock) - start_ms,
            itemsets=tuple(itemsets),
        )
        self._output.put(summary)
        logger.info(
            "summarizer: itemsets=%d outliers=%d inliers=%d took_ms=%d",
            len(itemsets),
            summary.num_outliers,
            summary.num_inliers,
            summary.creation_time_ms,
        )

    def get_stream(self) -> Stream[Summary]:
        return self._output
