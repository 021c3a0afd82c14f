#!/usr/bin/env python3
import argparse

from mixpipe.conf import BATCH_TRANSFORM_TYPES
from mixpipe.orchestrator import run_once


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mixture-model outlier analysis CLI")
    parser.add_argument("--config", required=True, help="Path to YAML config")
    parser.add_argument("--query-name", dest="query_name", type=str, help="Label used for dumps and reports")
    parser.add_argument("--transform-type", dest="transform_type", choices=list(BATCH_TRANSFORM_TYPES), help="Mixture model type")
    parser.add_argument("--components", dest="num_components", type=int, help="Number of mixture components")
    parser.add_argument("--seed", dest="random_seed", type=int, help="Random seed for model fitting")
    parser.add_argument("--dump", dest="classifier_dump", action="store_true", help="Dump classified records")
    parser.add_argument("--no-dump", dest="classifier_dump", action="store_false", help="Skip classifier dump even if configured")
    parser.add_argument("--output-dir", dest="output_dir", type=str, help="Directory for report files")
    parser.set_defaults(classifier_dump=None)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    overrides = {
        "query_name": args.query_name,
        "transform_type": args.transform_type,
        "num_components": args.num_components,
        "random_seed": args.random_seed,
        "classifier_dump": args.classifier_dump,
        "output_dir": args.output_dir,
    }

    run_once(args.config, overrides=overrides)


if __name__ == "__main__":
    main()
