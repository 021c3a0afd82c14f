import json

import numpy as np
import pytest

from helpers import make_cfg, make_rows
from mixpipe.conf import PipelineConf
from mixpipe.errors import ConfigurationError
from mixpipe.stages.ingest import construct_ingester
from mixpipe.stages.transform import BatchMixtureCoeffTransform, GridDumpingBatchScoreTransform


def _data(conf):
    return construct_ingester(conf).get_stream().drain()


def test_mixture_transform_preserves_order_and_identity(conf):
    data = _data(conf)
    tr = BatchMixtureCoeffTransform(conf, conf.transform_type)
    tr.consume(data)
    scored = tr.get_stream().drain()

    assert len(scored) == len(data)
    assert all(s.datum is d for s, d in zip(scored, data))
    for s in scored:
        assert len(s.coefficients) == 2
        assert sum(s.coefficients) == pytest.approx(1.0)
        assert np.isfinite(s.log_density)
    assert tr.get_stream().drain() == []


def test_mixture_model_handle_is_read_only(conf):
    tr = BatchMixtureCoeffTransform(conf, "gmm")
    model = tr.get_mixture_model()
    assert not model.fitted
    with pytest.raises(RuntimeError):
        model.weights

    tr.consume(_data(conf))
    assert model.fitted
    weights = model.weights
    assert sorted(np.round(weights, 2).tolist()) == [0.05, 0.95]
    with pytest.raises(ValueError):
        weights[0] = 1.0
    assert model.means.shape == (2, 2)


def test_empty_input_leaves_model_unfitted(conf):
    tr = BatchMixtureCoeffTransform(conf, "gmm")
    tr.consume([])
    assert tr.get_stream().drain() == []
    assert not tr.get_mixture_model().fitted


def test_components_clamped_to_row_count():
    conf = PipelineConf.from_dict(make_cfg(rows=make_rows()[:1], transform={"num_components": 4}))
    tr = BatchMixtureCoeffTransform(conf, "gmm")
    tr.consume(_data(conf))
    assert tr.get_mixture_model().num_components == 1
    assert tr.get_stream().drain()[0].coefficients == pytest.approx((1.0,))


def test_dpgmm_variant_scores_every_row():
    conf = PipelineConf.from_dict(make_cfg(transform={"type": "dpgmm", "num_components": 3}))
    tr = BatchMixtureCoeffTransform(conf, conf.transform_type)
    tr.consume(_data(conf))
    scored = tr.get_stream().drain()
    assert len(scored) == 100
    assert all(len(s.coefficients) == 3 for s in scored)


def test_unknown_transform_type(conf):
    with pytest.raises(ConfigurationError):
        BatchMixtureCoeffTransform(conf, "mcd")


def test_grid_transform_forwards_output_without_dump(conf):
    inner = BatchMixtureCoeffTransform(conf, "gmm")
    grid = GridDumpingBatchScoreTransform(conf, inner)
    grid.initialize()
    grid.consume(_data(conf))
    assert grid.last_dump is None
    assert len(grid.get_stream().drain()) == 100


def test_grid_transform_writes_density_grid(tmp_path):
    conf = PipelineConf.from_dict(
        make_cfg(transform={"grid": {"enabled": True, "size": 5, "dir": str(tmp_path)}})
    )
    inner = BatchMixtureCoeffTransform(conf, "gmm")
    grid = GridDumpingBatchScoreTransform(conf, inner)
    grid.initialize()
    grid.consume(_data(conf))

    path = tmp_path / "unit-grid.json"
    assert grid.last_dump == str(path)
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["dims"] == 2
    assert len(payload["axes"]) == 2
    assert np.array(payload["log_density"]).shape == (5, 5)
    assert len(grid.get_stream().drain()) == 100
