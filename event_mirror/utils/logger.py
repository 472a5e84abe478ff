import logging
import os

# Set up Python logging
logger = logging.getLogger("event-mirror-logger")
logger.setLevel(getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO))
logger.propagate = False  # Worker output goes through our own handler only

# Configure logging handler/format only if no handlers present
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s - [%(levelname)s] - %(name)s - %(funcName)s() - %(message)s"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
