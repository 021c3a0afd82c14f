from __future__ import annotations

import json
import os
import typing as t

import numpy as np
from sklearn.mixture import BayesianGaussianMixture, GaussianMixture

from mixpipe.conf import BATCH_TRANSFORM_TYPES, PipelineConf
from mixpipe.errors import ConfigurationError
from mixpipe.models import Datum, ScoredDatum
from mixpipe.stages.base import Stage, Stream
from mixpipe.utils import get_logger

logger = get_logger(__name__)


def _metric_matrix(data: t.List[Datum]) -> np.ndarray:
    if not data:
        return np.zeros((0, 0), dtype=float)
    return np.asarray([d.metrics for d in data], dtype=float)


def _readonly(arr: np.ndarray) -> np.ndarray:
    out = np.array(arr, copy=True)
    out.setflags(write=False)
    return out


class MixtureModel:
    """Read-only handle over the fitted estimator.

    Only ``BatchMixtureCoeffTransform`` fits it; everything else reads it.
    """

    def __init__(self, estimator: t.Union[GaussianMixture, BayesianGaussianMixture]) -> None:
        self._estimator = estimator
        self._fitted = False

    @property
    def fitted(self) -> bool:
        return self._fitted

    @property
    def num_components(self) -> int:
        return int(self._estimator.n_components)

    @property
    def weights(self) -> np.ndarray:
        self._check_fitted()
        return _readonly(self._estimator.weights_)

    @property
    def means(self) -> np.ndarray:
        self._check_fitted()
        return _readonly(self._estimator.means_)

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        self._check_fitted()
        return self._estimator.predict_proba(X)

    def score_samples(self, X: np.ndarray) -> np.ndarray:
        self._check_fitted()
        return self._estimator.score_samples(X)

    def _fit(self, X: np.ndarray) -> None:
        n = min(self.num_components, X.shape[0])
        if n != self.num_components:
            logger.info("transform.mixture: clamping components %d -> %d (rows=%d)", self.num_components, n, X.shape[0])
            self._estimator.set_params(n_components=n)
        self._estimator.fit(X)
        self._fitted = True

    def _check_fitted(self) -> None:
        if not self._fitted:
            raise RuntimeError("mixture model has not been fitted")


class FeatureTransform(Stage[ScoredDatum]):
    pass


class BatchMixtureCoeffTransform(FeatureTransform):
    """Fits a mixture model and replaces each record's score with its component memberships."""

    def __init__(self, conf: PipelineConf, transform_type: str) -> None:
        if transform_type not in BATCH_TRANSFORM_TYPES:
            raise ConfigurationError(f"Unknown transform type: {transform_type}")
        self.transform_type = transform_type
        k = conf.get_int("transform.num_components", 3)
        common = dict(
            n_components=k,
            covariance_type=conf.get_string("transform.covariance_type", "full"),
            max_iter=conf.get_int("transform.max_iter", 200),
            random_state=conf.get_int("transform.random_seed", 0),
        )
        if transform_type == "dpgmm":
            estimator = BayesianGaussianMixture(
                weight_concentration_prior_type="dirichlet_process",
                **common,
            )
        else:
            estimator = GaussianMixture(**common)
        self._model = MixtureModel(estimator)
        self._output: Stream[ScoredDatum] = Stream()

    def get_mixture_model(self) -> MixtureModel:
        return self._model

    def consume(self, records: t.List[Datum]) -> None:
        if not records:
            logger.info("transform.mixture: no records, model left unfitted")
            return
        X = _metric_matrix(records)
        self._model._fit(X)
        proba = self._model.predict_proba(X)
        density = self._model.score_samples(X)
        for d, p, s in zip(records, proba, density):
            self._output.put(ScoredDatum(datum=d, coefficients=tuple(float(v) for v in p), log_density=float(s)))
        logger.info(
            "transform.mixture: type=%s rows=%d components=%d",
            self.transform_type,
            len(records),
            self._model.num_components,
        )

    def get_stream(self) -> Stream[ScoredDatum]:
        return self._output


class GridDumpingBatchScoreTransform(FeatureTransform):
    """Forwards the wrapped transform's output and can dump a density grid.

    The grid spans the bounding box of the first two metric dimensions (one
    for univariate data); remaining dimensions are held at the data mean.
    """

    def __init__(self, conf: PipelineConf, inner: BatchMixtureCoeffTransform) -> None:
        self.conf = conf
        self.inner = inner
        self.enabled = False
        self.grid_size = 0
        self.path: t.Optional[str] = None
        self.last_dump: t.Optional[str] = None

    def initialize(self) -> None:
        self.inner.initialize()
        self.enabled = self.conf.get_bool("transform.grid.enabled", False)
        self.grid_size = self.conf.get_int("transform.grid.size", 20)
        if self.enabled:
            out_dir = self.conf.get_string("transform.grid.dir", "dumps")
            self.path = os.path.join(out_dir, f"{self.conf.query_name}-grid.json")

    def consume(self, records: t.List[Datum]) -> None:
        self.inner.consume(records)
        model = self.inner.get_mixture_model()
        if self.enabled and model.fitted and records:
            self.last_dump = self._dump_grid(_metric_matrix(records), model)

    def _dump_grid(self, X: np.ndarray, model: MixtureModel) -> str:
        dims = min(2, X.shape[1])
        lo, hi = X.min(axis=0), X.max(axis=0)
        axes = [np.linspace(lo[i], hi[i], self.grid_size) for i in range(dims)]
        mesh = np.meshgrid(*axes, indexing="ij")
        points = np.tile(X.mean(axis=0), (mesh[0].size, 1))
        for i in range(dims):
            points[:, i] = mesh[i].ravel()
        scores = model.score_samples(points).reshape(mesh[0].shape)

        payload = {
            "query_name": self.conf.query_name,
            "dims": dims,
            "axes": [a.tolist() for a in axes],
            "log_density": scores.tolist(),
        }
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        logger.info("transform.grid: wrote %s size=%d dims=%d", self.path, self.grid_size, dims)
        return self.path

    def get_stream(self) -> Stream[ScoredDatum]:
        return self.inner.get_stream()
