import os
import glob
import logging
from datetime import datetime

APP_LOGGER_NAME = "nextlog_companion"

_logger = None
_contact_logger = None
contact_log_file = None

CONTACT_CSV_HEADER = "qso_date,time_on,call,band,freq_hz,mode,rst_sent,rst_rcvd,submitted"


def setup_logging(log_dir="logs", clear_old=False, debug=False):
    global _logger, _contact_logger, contact_log_file

    os.makedirs(log_dir, exist_ok=True)

    if clear_old:
        clear_old_logs(log_dir)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    general_log_file = os.path.join(log_dir, f"nextlog-companion_{timestamp}.log")
    contact_log_file = os.path.join(log_dir, f"contacts_{timestamp}.csv")

    # Main logger
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(general_log_file, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )

    _logger = logging.getLogger(APP_LOGGER_NAME)
    _logger.setLevel(logging.DEBUG if debug else logging.INFO)
    _logger.debug(f"Log file created: {general_log_file}")
    _logger.debug(f"Forwarded contacts will be written to: {contact_log_file}")
    _logger.debug(f"Logging level set to: {'DEBUG' if debug else 'INFO'}")

    # Contact journal (no timestamps, file only)
    _contact_logger = logging.getLogger("contacts")
    _contact_logger.setLevel(logging.INFO)

    contact_handler = logging.FileHandler(contact_log_file, encoding="utf-8")
    contact_handler.setFormatter(logging.Formatter('%(message)s'))  # No timestamp
    _contact_logger.addHandler(contact_handler)
    _contact_logger.propagate = False  # Don't send to root logger
    _contact_logger.info(CONTACT_CSV_HEADER)

    return _logger, contact_log_file


def get_logger():
    """Application logger; usable before setup_logging() for library use and tests."""
    if _logger is None:
        return logging.getLogger(APP_LOGGER_NAME)
    return _logger


def get_contact_logger():
    if _contact_logger is None:
        raise RuntimeError("Contact logger not initialized. Call setup_logging() first.")
    return _contact_logger


def has_contact_logger() -> bool:
    return _contact_logger is not None


def clear_old_logs(log_dir: str):
    if not os.path.exists(log_dir):
        return

    patterns = ["*.log", "*.csv"]
    deleted = 0

    for pattern in patterns:
        for file in glob.glob(os.path.join(log_dir, pattern)):
            try:
                os.remove(file)
                deleted += 1
            except OSError as e:
                print(f"Failed to delete {file}: {e}")

    print(f"Cleared {deleted} old log files.")
