import logging
import os

LOG_FORMAT = "[%(levelname)s] %(asctime)s - %(name)s - %(message)s"

# Model libraries are chatty at INFO (download bars, weight warnings)
_NOISY_LOGGERS = ("transformers", "huggingface_hub", "PIL", "urllib3")


def get_logger(name: str, level: str = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger  # avoid duplicate handlers in reloads

    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(level)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(ch)
    # our handler already prints; don't repeat through uvicorn's root handler
    logger.propagate = False

    if logging.getLevelName(level) != logging.DEBUG:
        for noisy in _NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
