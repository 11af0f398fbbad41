import logging

RESET = "\033[0m"
DIM = "\033[2m"
BOLD = "\033[1m"
RED = "\033[31m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
MAGENTA = "\033[35m"
CYAN = "\033[36m"

LEVEL_COLORS = {
    logging.DEBUG: DIM,
    logging.INFO: GREEN,
    logging.WARNING: YELLOW,
    logging.ERROR: RED,
    logging.CRITICAL: RED + BOLD,
}

# First matching marker wins.
MESSAGE_HIGHLIGHTS = (
    ("State: ", BOLD + CYAN),
    ("Commit: ", BOLD + GREEN),
    ("Transcription: ", CYAN),
    ("Socket connected", BOLD + MAGENTA),
    ("Socket disconnected", MAGENTA),
    ("Answer: ", BOLD + YELLOW),
    ("Question extracted", YELLOW),
)


def _highlight(record: logging.LogRecord, msg: str) -> str:
    for marker, style in MESSAGE_HIGHLIGHTS:
        if msg.startswith(marker):
            return f"{style}{msg}{RESET}"
    if record.levelno == logging.DEBUG:
        return f"{DIM}{msg}{RESET}"
    if record.levelno >= logging.WARNING:
        return f"{LEVEL_COLORS.get(record.levelno, RED)}{msg}{RESET}"
    return msg


class ColoredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, "")
        stamp = self.formatTime(record, self.datefmt)
        source = record.name.rsplit(".", 1)[-1]
        msg = _highlight(record, record.getMessage())
        line = f"{DIM}{stamp}{RESET} {color}{record.levelname:<5}{RESET} {DIM}{source:<15}{RESET} {msg}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
