"""
Logging configuration for snap2dxf.
"""

import logging
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_HANDLER_NAME = "snap2dxf"


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[Union[str, Path]] = None) -> None:
    """
    Set up logging configuration.

    Repeated calls replace the handlers installed by earlier calls instead of
    adding more.

    Args:
        level: Logging level name or number (default: INFO)
        log_file: Optional path to log file. If None, logs only to console
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")

    formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler()
    console_handler.set_name(_HANDLER_NAME)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.set_name(_HANDLER_NAME)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Set logging level for chatty libraries
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("ezdxf").setLevel(logging.WARNING)
