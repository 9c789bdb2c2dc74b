import logging


class Colors:
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"


class ColorFormatter(logging.Formatter):
    COLOR_MAP = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.RED + Colors.BOLD,
    }

    def format(self, record):
        color = self.COLOR_MAP.get(record.levelno, Colors.RESET)
        message = super().format(record)
        return f"{color}{message}{Colors.RESET}"


def setup_logger(name="moltpack", level=logging.INFO):
    logger = logging.getLogger(name)
    # Prevent adding multiple handlers in case of repeated calls
    if logger.handlers:
        return logger
    logger.setLevel(level)
    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(ColorFormatter("%(message)s"))
    logger.addHandler(ch)
    return logger


def set_verbosity(verbose: bool, name="moltpack") -> None:
    """Switch the package logger and its handlers between INFO and DEBUG."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = setup_logger(name)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
