import gzip
import logging
import os
import shutil
import uuid
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from time import perf_counter

LOG_DIR_ENV = "DHCPMON_LOG_DIR"

# One correlation id per process; every logger created through get_logger shares it.
_RUN_ID = str(uuid.uuid4())


# ----------------------------------------------------------------------
# Custom Filters
# ----------------------------------------------------------------------
class CorrelationFilter(logging.Filter):
    """Attach correlation/run ID to every log record."""

    def __init__(self, run_id: str):
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id
        return True


# ----------------------------------------------------------------------
# Log rotation with gzip compression
# ----------------------------------------------------------------------
def _rotator(source, dest):
    with open(source, "rb") as sf, gzip.open(dest + ".gz", "wb") as df:
        shutil.copyfileobj(sf, df)
    Path(source).unlink()


def _namer(name):
    return name


def _log_dir() -> Path:
    return Path(os.getenv(LOG_DIR_ENV, "logs"))


# ----------------------------------------------------------------------
# Logger Setup
# ----------------------------------------------------------------------
def get_logger(
    name: str,
    log_level: str = "INFO",
    log_file: str = "dhcpmon.log",
    run_id: str = None,
    retention_days: int = 14,
) -> logging.Logger:
    """
    Create or retrieve a logger:
    - Console + rotating file (daily, compress, retain N days)
    - Correlation ID (run_id), shared by the whole process unless given
    """

    log_dir = _log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    corr_filter = CorrelationFilter(run_id or _RUN_ID)

    fmt = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | run_id=%(run_id)s | "
        "%(filename)s:%(lineno)d | %(message)s"
    )

    # Avoid duplicate handlers
    if not logger.handlers:
        ch = logging.StreamHandler()
        ch.setLevel(logging.DEBUG)
        ch.setFormatter(fmt)
        ch.addFilter(corr_filter)

        fh = TimedRotatingFileHandler(
            log_dir / log_file, when="midnight", backupCount=retention_days, encoding="utf-8"
        )
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        fh.rotator = _rotator
        fh.namer = _namer
        fh.addFilter(corr_filter)

        logger.addHandler(ch)
        logger.addHandler(fh)

    return logger


# ----------------------------------------------------------------------
# Metrics Logging Helper
# ----------------------------------------------------------------------
def log_metric(logger: logging.Logger, name: str, value: int, **labels):
    """Log a structured metric in a consistent format."""
    label_str = " ".join(f"{k}={v}" for k, v in labels.items())
    logger.info("METRIC | %s=%s %s", name, value, label_str)


# ----------------------------------------------------------------------
# Stage Timing Context Manager
# ----------------------------------------------------------------------
class log_stage:
    """Context manager for timing a reload or load stage."""

    def __init__(self, logger: logging.Logger, stage: str):
        self.logger = logger
        self.stage = stage

    def __enter__(self):
        self.start = perf_counter()
        self.logger.debug("Stage '%s' started", self.stage)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = perf_counter() - self.start
        if exc_type is not None:
            self.logger.debug("Stage '%s' aborted after %.3fs", self.stage, duration)
            return False
        self.logger.info("Stage '%s' completed in %.3fs", self.stage, duration)
        return False
