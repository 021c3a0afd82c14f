import os
import json
import time
import datetime as dt
import logging
from logging.handlers import TimedRotatingFileHandler
from typing import Callable, List

from jsonschema import validate, Draft202012Validator
from jsonschema.exceptions import ValidationError

from mixpipe.errors import ConfigurationError

# ---------- Time helpers ----------

def monotonic_ms(clock: Callable[[], float] = time.monotonic) -> int:
    """Clock reading truncated to whole milliseconds.

    Differences of these readings nest: a span measured inside another span
    on the same clock is never longer than the outer one.
    """
    return int(clock() * 1000)

# ---------- Config validation ----------

def load_file(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()

def validate_config(cfg: dict):
    here = os.path.dirname(os.path.abspath(__file__))
    schema_path = os.path.join(here, "schemas", "config.schema.json")
    schema = json.loads(load_file(schema_path))
    try:
        validate(instance=cfg, schema=schema, cls=Draft202012Validator)
    except ValidationError as e:
        raise ConfigurationError(f"Config validation error: {e.message} at {list(e.path)}") from e

# ---------- Output writer ----------

def write_output(human_md: str, json_obj: dict, out_cfg: dict) -> List[str]:
    out_dir = out_cfg["dir"]
    formats = out_cfg.get("formats", ["md", "json"])
    os.makedirs(out_dir, exist_ok=True)
    now_local = dt.datetime.now().astimezone()
    ts = now_local.strftime("%Y%m%dT%H%M%S%z")
    base = os.path.join(out_dir, f"analysis_{ts}")

    generated_files = []

    if "md" in formats:
        md_path = base + ".md"
        with open(md_path, "w", encoding="utf-8") as f:
            f.write(human_md)
        generated_files.append(md_path)

    if "json" in formats:
        json_path = base + ".json"
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(json_obj, f, ensure_ascii=False, indent=2, allow_nan=False)
        generated_files.append(json_path)

    return generated_files

# ---------- Logging ----------

_LOGGER_INITIALIZED = False

class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": dt.datetime.fromtimestamp(record.created, dt.timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)

def _build_logger():
    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    # Default to a local, writable logs directory
    log_dir = os.getenv("LOG_DIR", "logs")
    json_mode = os.getenv("LOG_JSON", "false").lower() == "true"

    os.makedirs(log_dir, exist_ok=True)
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level, logging.INFO))

    ch = logging.StreamHandler()
    ch.setLevel(logger.level)

    fh = TimedRotatingFileHandler(os.path.join(log_dir, "mixpipe.log"), when="D", backupCount=7, encoding="utf-8")
    fh.setLevel(logger.level)

    if json_mode:
        fmt = JsonFormatter()
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    ch.setFormatter(fmt)
    fh.setFormatter(fmt)
    logger.addHandler(ch)
    logger.addHandler(fh)

    _LOGGER_INITIALIZED = True

def get_logger(name: str = None) -> logging.Logger:
    _build_logger()
    return logging.getLogger(name if name else __name__)
