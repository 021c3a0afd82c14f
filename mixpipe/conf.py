"""Validated, read-only pipeline configuration."""

from __future__ import annotations

import copy
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

from mixpipe.errors import ConfigurationError
from mixpipe.utils import validate_config

CLASSIFIER_DUMP = "classifier.dump"
QUERY_NAME = "query_name"
TRANSFORM_TYPE = "transform.type"
EXECUTION_MODE = "execution.mode"
METRICS = "ingest.metrics"

BATCH_TRANSFORM_TYPES = ("gmm", "dpgmm")
DEFAULT_TRANSFORM_TYPE = "gmm"

_MISSING = object()


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


class PipelineConf:
    """Immutable view over a validated configuration dict.

    Keys are addressed with dotted paths (``"transform.num_components"``).
    Nested sections come back as read-only mappings and lists as tuples.
    """

    def __init__(self, cfg: Mapping[str, Any]):
        self._data = _freeze(copy.deepcopy(dict(cfg)))

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "PipelineConf":
        validate_config(cfg)
        return cls(cfg)

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return node

    def is_set(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def get_bool(self, key: str, default: bool = False) -> bool:
        return bool(self.get(key, default))

    def get_int(self, key: str, default: Optional[int] = None) -> int:
        value = self.get(key, default)
        if value is None:
            raise ConfigurationError(f"missing integer setting: {key}")
        return int(value)

    def get_float(self, key: str, default: Optional[float] = None) -> float:
        value = self.get(key, default)
        if value is None:
            raise ConfigurationError(f"missing numeric setting: {key}")
        return float(value)

    def get_string(self, key: str, default: Optional[str] = None) -> str:
        value = self.get(key, default)
        if value is None:
            raise ConfigurationError(f"missing string setting: {key}")
        return str(value)

    @property
    def transform_type(self) -> str:
        return self.get_string(TRANSFORM_TYPE, DEFAULT_TRANSFORM_TYPE).lower()

    @property
    def query_name(self) -> str:
        return self.get_string(QUERY_NAME)

    def sanity_check_batch(self) -> None:
        """Reject settings that only make sense for a streaming run."""
        mode = self.get_string(EXECUTION_MODE, "batch")
        if mode != "batch":
            raise ConfigurationError(f"batch pipeline cannot run with execution.mode={mode}")
        if self.is_set("streaming"):
            raise ConfigurationError("streaming settings are not allowed in a batch run")
        if not self.get(METRICS):
            raise ConfigurationError("at least one metric column must be configured under ingest.metrics")
        if self.transform_type not in BATCH_TRANSFORM_TYPES:
            raise ConfigurationError(
                f"transform type {self.transform_type!r} is not available in batch mode "
                f"(expected one of {', '.join(BATCH_TRANSFORM_TYPES)})"
            )

    def to_dict(self) -> Dict[str, Any]:
        def thaw(value):
            if isinstance(value, Mapping):
                return {k: thaw(v) for k, v in value.items()}
            if isinstance(value, tuple):
                return [thaw(v) for v in value]
            return value

        return thaw(self._data)


def load_config(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f)
    if not isinstance(cfg, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    return cfg
