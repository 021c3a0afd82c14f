import json
import uuid
from typing import Any, Dict, List, Optional

from mixpipe.conf import PipelineConf, load_config
from mixpipe.models import AnalysisResult
from mixpipe.pipeline import MixtureModelPipeline
from mixpipe.report import render_md
from mixpipe.utils import get_logger, validate_config, write_output

logger = get_logger(__name__)


def _apply_overrides(cfg: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> None:
    if not overrides:
        return

    if overrides.get("query_name") is not None:
        cfg["query_name"] = overrides["query_name"]

    # Transform
    if (
        overrides.get("transform_type") is not None
        or overrides.get("num_components") is not None
        or overrides.get("random_seed") is not None
    ):
        tr = cfg.setdefault("transform", {})
        if overrides.get("transform_type") is not None:
            tr["type"] = overrides["transform_type"]
        if overrides.get("num_components") is not None:
            tr["num_components"] = int(overrides["num_components"])
        if overrides.get("random_seed") is not None:
            tr["random_seed"] = int(overrides["random_seed"])

    # Classifier dump
    if overrides.get("classifier_dump") is not None:
        cl = cfg.setdefault("classifier", {})
        cl["dump"] = bool(overrides["classifier_dump"])

    # Output
    if overrides.get("output_dir") is not None:
        out = cfg.setdefault("output", {})
        out["dir"] = overrides["output_dir"]


def _execute_pipeline(cfg: Dict[str, Any]) -> List[AnalysisResult]:
    """Run the pipeline for a validated config dict and write any configured outputs."""
    conf = PipelineConf(cfg)
    logger.info(
        "config loaded query=%s loader=%s transform=%s dump=%s",
        conf.query_name,
        conf.get("ingest.loader"),
        conf.transform_type,
        conf.get_bool("classifier.dump"),
    )

    pipeline = MixtureModelPipeline(logger=get_logger("mixpipe.pipeline")).initialize(conf)
    results = pipeline.run()
    result = results[0]
    logger.info(
        "analysis done outliers=%d inliers=%d itemsets=%d load_ms=%d execute_ms=%d summarize_ms=%d",
        result.num_outliers,
        result.num_inliers,
        len(result.itemsets),
        result.load_time_ms,
        result.execute_time_ms,
        result.summarize_time_ms,
    )

    out_cfg = cfg.get("output")
    if out_cfg:
        md = render_md(result, out_cfg.get("title", f"Outlier analysis: {conf.query_name}"))
        js = json.loads(result.model_dump_json())
        js["query_name"] = conf.query_name
        generated_files = write_output(md, js, out_cfg)
        logger.info("output written files=%s", generated_files)

    return results


def run_once(config_path: str, *, overrides: Optional[Dict[str, Any]] = None) -> List[AnalysisResult]:
    """Execute pipeline once with given config file path."""
    run_id = uuid.uuid4().hex[:8]
    logger.info("=== run start id=%s ===", run_id)

    try:
        cfg = load_config(config_path)
        _apply_overrides(cfg, overrides)
        validate_config(cfg)
        return _execute_pipeline(cfg)

    except Exception as e:
        logger.error("Pipeline execution failed: %s", e)
        raise
    finally:
        logger.info("=== run end id=%s ===", run_id)
