"""
Langfuse configuration for the reorder check.

Set LANGFUSE_PUBLIC_KEY / LANGFUSE_SECRET_KEY (and optionally LANGFUSE_HOST)
to get one trace per scan with a span per user. If keys are not set the
@observe decorators still run and tracing is silently disabled.
"""

import logging
import os

from config import AppConfig

logger = logging.getLogger("rxsupply.tracing")


def configure_langfuse_decorators(config: AppConfig) -> bool:
    """Expose the configured keys to the @observe runtime. Call once at startup."""
    if not config.langfuse_enabled:
        logger.info("Langfuse not configured, scan tracing disabled")
        return False

    os.environ["LANGFUSE_PUBLIC_KEY"] = config.langfuse_public_key
    os.environ["LANGFUSE_SECRET_KEY"] = config.langfuse_secret_key
    os.environ["LANGFUSE_HOST"] = config.langfuse_host
    logger.info("Langfuse configured, traces at %s", config.langfuse_host)
    return True


def configure_logging(logs_dir: str | None = None, level: int = logging.INFO) -> logging.Logger:
    """Console logging for ``rxsupply.*`` plus an error file under ``logs_dir``."""
    root = logging.getLogger("rxsupply")
    if root.handlers:
        return root
    root.setLevel(level)
    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(stream)
    if logs_dir:
        os.makedirs(logs_dir, exist_ok=True)
        fh = logging.FileHandler(os.path.join(logs_dir, "errors.log"), encoding="utf-8")
        fh.setLevel(logging.ERROR)
        fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        root.addHandler(fh)
    return root
