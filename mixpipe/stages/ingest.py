from __future__ import annotations

import os
import typing as t

import numpy as np
import pandas as pd

from mixpipe.conf import PipelineConf
from mixpipe.errors import ConfigurationError, IngestError
from mixpipe.models import Datum
from mixpipe.stages.base import Stream
from mixpipe.utils import get_logger

logger = get_logger(__name__)


class DataIngester:
    """Turns a tabular source into ``Datum`` records.

    Subclasses only provide ``_load_frame``; column selection and row
    conversion are shared.
    """

    def __init__(self, conf: PipelineConf) -> None:
        self.metrics: t.List[str] = list(conf.get("ingest.metrics") or [])
        self.attributes: t.List[str] = list(conf.get("ingest.attributes") or [])

    def _load_frame(self) -> pd.DataFrame:
        raise NotImplementedError

    def _to_data(self, df: pd.DataFrame) -> t.List[Datum]:
        missing = [c for c in self.metrics + self.attributes if c not in df.columns]
        if missing and len(df.columns):
            raise IngestError(f"input is missing configured columns: {', '.join(missing)}")
        if df.empty:
            return []

        metrics = df[self.metrics].apply(pd.to_numeric, errors="coerce")
        valid = metrics.notna().all(axis=1).to_numpy()
        dropped = int((~valid).sum())
        if dropped:
            logger.warning("ingest: dropped rows=%d with missing or non-numeric metrics", dropped)

        values = metrics.to_numpy(dtype=float)
        # missing attribute values are left out of the record, not stringified
        attrs = df[self.attributes].to_numpy(dtype=object)

        data: t.List[Datum] = []
        for pos in np.flatnonzero(valid):
            attributes = tuple(
                (col, str(val)) for col, val in zip(self.attributes, attrs[pos].tolist()) if not pd.isna(val)
            )
            data.append(
                Datum(datum_id=int(pos), metrics=tuple(float(v) for v in values[pos]), attributes=attributes)
            )
        return data

    def get_stream(self) -> Stream[Datum]:
        df = self._load_frame()
        data = self._to_data(df)
        logger.info("ingest: loaded rows=%d metrics=%d attributes=%d", len(data), len(self.metrics), len(self.attributes))
        return Stream(data)


class CSVIngester(DataIngester):
    def __init__(self, conf: PipelineConf) -> None:
        super().__init__(conf)
        self.path = conf.get_string("ingest.path", "")
        if not self.path:
            raise ConfigurationError("ingest.path is required for the csv loader")

    def _load_frame(self) -> pd.DataFrame:
        if not os.path.exists(self.path):
            raise IngestError(f"input file not found: {self.path}")
        try:
            return pd.read_csv(self.path, dtype={c: str for c in self.attributes})
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise IngestError(f"failed to parse {self.path}: {e}") from e


class MemoryIngester(DataIngester):
    """Rows given inline under ``ingest.rows``."""

    def __init__(self, conf: PipelineConf) -> None:
        super().__init__(conf)
        self.rows = [dict(r) for r in conf.get("ingest.rows") or ()]

    def _load_frame(self) -> pd.DataFrame:
        if not self.rows:
            return pd.DataFrame()
        return pd.DataFrame.from_records(self.rows)


_LOADERS: t.Dict[str, t.Type[DataIngester]] = {
    "csv": CSVIngester,
    "memory": MemoryIngester,
}


def construct_ingester(conf: PipelineConf) -> DataIngester:
    loader = conf.get_string("ingest.loader", "csv").lower()
    if loader not in _LOADERS:
        raise ConfigurationError(f"Unknown ingest loader: {loader}")
    return _LOADERS[loader](conf)
