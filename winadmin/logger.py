"""Centralized logging for every toolkit task
-------------------------------------------------
One ``winadmin`` logger fans each record out to:

* the console – colour-coded by severity (disabled for non-TTY or ``NO_COLOR``)
* a per-run log file – ``<prefix>_<yyyymmdd_HHMMSS>.log``, old runs pruned
* optionally a GUI text widget (tkinter ``Text`` or anything with that API)
* optionally the Windows Application event log (needs pywin32)

``write_log("msg", "SUCCESS")`` is the one-call form used by the tasks.
"""

from __future__ import annotations
import datetime as _dt
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Callable

LOGGER_NAME = "winadmin"
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

COLOR_RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "",
    SUCCESS: "\033[92m",
    logging.WARNING: "\033[93m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[91m",
}

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "SUCCESS": SUCCESS,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

log = logging.getLogger(LOGGER_NAME)

class ColorFormatter(logging.Formatter):
    def __init__(self, use_color: bool):
        super().__init__(LOG_FORMAT, DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        colour = LEVEL_COLORS.get(record.levelno, "")
        if not self.use_color or not colour:
            return line
        return f"{colour}{line}{COLOR_RESET}"

class TextWidgetHandler(logging.Handler):
    """Appends formatted records to a read-only tkinter ``Text`` widget.

    Lines are tagged with the lower-case level name so the widget can colour
    them. *dispatch* (e.g. ``lambda fn: root.after(0, fn)``) moves the update
    onto the GUI thread when records arrive from a worker.
    """

    def __init__(self, widget, dispatch: Callable[[Callable[[], None]], object] | None = None):
        super().__init__()
        self.widget = widget
        self.dispatch = dispatch
        self.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        tag = record.levelname.lower()

        def _append():
            self.widget.configure(state="normal")
            self.widget.insert("end", line + "\n", tag)
            self.widget.see("end")
            self.widget.configure(state="disabled")

        if self.dispatch is not None:
            self.dispatch(_append)
        else:
            _append()

def _wants_color(stream) -> bool:
    if "NO_COLOR" in os.environ:
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())

def _mark(handler: logging.Handler) -> logging.Handler:
    handler._winadmin = True
    return handler

def _remove_own_handlers() -> None:
    for handler in list(log.handlers):
        if getattr(handler, "_winadmin", False):
            log.removeHandler(handler)
            handler.close()

def prune_logs(directory: Path | str, prefix: str, keep: int) -> list[Path]:
    """Delete the oldest ``<prefix>_*.log`` files so at most *keep* remain."""
    directory = Path(directory)
    if keep < 1 or not directory.is_dir():
        return []
    runs = sorted(directory.glob(f"{prefix}_*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    removed = []
    for old in runs[keep:]:
        try:
            old.unlink()
            removed.append(old)
        except OSError as e:
            log.warning("Could not remove old log %s: %s", old, e)
    return removed

def setup_logging(log_dir: Path | str | None = None, prefix: str = "winadmin", keep: int = 10,
                  verbose: bool = False, stream=None, gui_widget=None,
                  gui_dispatch: Callable | None = None, event_log: bool = False) -> Path | None:
    """Install the toolkit handlers and return the run log path (``None`` without *log_dir*).

    Calling it again replaces the handlers from the previous call.
    """
    _remove_own_handlers()
    log.setLevel(logging.DEBUG if verbose else logging.INFO)
    log.propagate = False

    stream = stream if stream is not None else sys.stdout
    console = logging.StreamHandler(stream)
    console.setFormatter(ColorFormatter(_wants_color(stream)))
    log.addHandler(_mark(console))

    log_path = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = _dt.datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = log_dir / f"{prefix}_{stamp}.log"
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        log.addHandler(_mark(file_handler))
        prune_logs(log_dir, prefix, keep)

    if gui_widget is not None:
        log.addHandler(_mark(TextWidgetHandler(gui_widget, gui_dispatch)))

    if event_log:
        if sys.platform == "win32":
            # NTEventLogHandler needs pywin32 (win32evtlogutil)
            event_handler = logging.handlers.NTEventLogHandler("winadmin")
            event_handler.setLevel(logging.WARNING)
            log.addHandler(_mark(event_handler))
        else:
            log.warning("Windows event log sink requested on %s – skipped", sys.platform)
    return log_path

def write_log(message: str, level: str = "INFO") -> None:
    log.log(_LEVELS.get(level.upper(), logging.INFO), message)

def success(message: str, *args) -> None:
    log.log(SUCCESS, message, *args)
