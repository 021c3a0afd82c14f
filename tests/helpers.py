import numpy as np


def make_rows(n_inliers: int = 95, n_outliers: int = 5, seed: int = 0):
    rng = np.random.default_rng(seed)
    rows = []
    for i, (x, y) in enumerate(rng.normal(0.0, 1.0, size=(n_inliers, 2))):
        rows.append({
            "power": float(x),
            "temp": float(y),
            "device": "a" if i % 2 else "b",
            "firmware": "v1",
            "region": "eu" if i % 2 else "us",
        })
    for i, (x, y) in enumerate(rng.normal(10.0, 0.3, size=(n_outliers, 2))):
        rows.append({
            "power": float(x),
            "temp": float(y),
            "device": "x",
            "firmware": "v2-beta",
            "region": "eu" if i % 2 else "us",
        })
    return rows


def make_cfg(rows=None, **sections):
    cfg = {
        "query_name": "unit",
        "ingest": {
            "loader": "memory",
            "rows": make_rows() if rows is None else rows,
            "metrics": ["power", "temp"],
            "attributes": ["device", "firmware", "region"],
        },
        "transform": {"type": "gmm", "num_components": 2, "random_seed": 0},
        "classifier": {"min_component_weight": 0.1, "probability_cutoff": 0.5},
        "summarizer": {"min_support": 0.2, "min_ratio": 3.0, "max_itemset_size": 2},
    }
    for key, value in sections.items():
        cfg.setdefault(key, {}).update(value)
    return cfg
