import logging
import sys


def setup_logging(level: str | None = 'INFO') -> None:
    """Configure the root logger with a single stdout handler."""
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Reloads would otherwise stack duplicate handlers.
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            fmt='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        )
    )
    root_logger.addHandler(handler)
