"""
Langfuse configuration for the forecasting agents.

Add to Backend/.env to get traces of every forecast, backtest and alert scan:

     LANGFUSE_PUBLIC_KEY=pk-lf-xxxxxxxx
     LANGFUSE_SECRET_KEY=sk-lf-xxxxxxxx
     LANGFUSE_HOST=https://cloud.langfuse.com

If keys are not set, everything still works, Langfuse tracing
is just silently disabled.
"""

import logging
import os

from dotenv import load_dotenv
from langfuse.decorators import langfuse_context

load_dotenv()

LANGFUSE_PUBLIC_KEY = os.getenv("LANGFUSE_PUBLIC_KEY", "")
LANGFUSE_SECRET_KEY = os.getenv("LANGFUSE_SECRET_KEY", "")
LANGFUSE_HOST = os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")
LANGFUSE_ENABLED = bool(LANGFUSE_PUBLIC_KEY and LANGFUSE_SECRET_KEY)

logger = logging.getLogger("posforecast.tracing")


def configure_langfuse_decorators():
    """
    Configure the @observe decorator to use our Langfuse keys.
    Call this ONCE at app startup (in main.py).
    """
    if not LANGFUSE_ENABLED:
        langfuse_context.configure(enabled=False)
        logger.info("Langfuse not configured, agent tracing disabled")
        return

    os.environ["LANGFUSE_PUBLIC_KEY"] = LANGFUSE_PUBLIC_KEY
    os.environ["LANGFUSE_SECRET_KEY"] = LANGFUSE_SECRET_KEY
    os.environ["LANGFUSE_HOST"] = LANGFUSE_HOST
    langfuse_context.configure(
        public_key=LANGFUSE_PUBLIC_KEY,
        secret_key=LANGFUSE_SECRET_KEY,
        host=LANGFUSE_HOST,
        enabled=True,
    )
    logger.info("Langfuse configured, traces at %s", LANGFUSE_HOST)


def trace_output(data: dict) -> None:
    """Attach ``data`` as the output of the current observation, if any."""
    try:
        langfuse_context.update_current_observation(output=data)
    except Exception:
        logger.debug("Langfuse observation update skipped", exc_info=True)
