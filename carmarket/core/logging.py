import logging
import sys
from pythonjsonlogger import jsonlogger

from carmarket.core.config import LOG_LEVEL

def setup_logging():
    """
    Configures centralized JSON logging on stdout.
    Application loggers follow LOG_LEVEL; database, cache and imaging libraries are kept at WARNING.
    """
    # 1. Get the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(LOG_LEVEL)

    # 2. Prevent duplicate logs by removing existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # 3. Create StreamHandler for stdout (collected by the container runtime)
    log_handler = logging.StreamHandler(sys.stdout)

    # 4. Define JSON Format
    formatter = jsonlogger.JsonFormatter(
        fmt='%(asctime)s %(levelname)s %(name)s %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%SZ'
    )
    log_handler.setFormatter(formatter)
    root_logger.addHandler(log_handler)

    # 5. Library-Specific Verbosity Management
    logging.getLogger("carmarket").setLevel(LOG_LEVEL)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)

    # Noise reduction (WARNING) for infrastructure and transport layers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)

    root_logger.info("Logging infrastructure initialized successfully.")
