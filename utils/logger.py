import logging
import sys
import os

_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """scriptcut.<name> 로거 반환 (stdout, 선택적으로 SCRIPTCUT_LOG_FILE)."""
    logger = logging.getLogger(f"scriptcut.{name}")
    if not logger.handlers:
        formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        log_file = os.getenv("SCRIPTCUT_LOG_FILE")
        if log_file:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        level = os.getenv("LOG_LEVEL", "DEBUG").upper()
        logger.setLevel(getattr(logging, level, logging.DEBUG))
        logger.propagate = False
    return logger
