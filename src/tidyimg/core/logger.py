import logging
import sys
from pathlib import Path


def configure_logging(log_dir: Path | None = None, *, verbose: bool = False) -> Path:
    """
    Configure application-wide logging with console + file handlers.

    Errors are logged with stack traces at the boundary that reports them;
    the core modules only log through ``logging.getLogger(__name__)``.
    Returns the path of the log file.
    """
    log_dir = log_dir or Path.home() / ".tidyimg"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "app.log"

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s – %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)

    logging.basicConfig(level=logging.DEBUG, handlers=[file_handler, console_handler], force=True)
    # Keep Pillow and urllib3 debug output out of the edit log.
    for name in ("PIL", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_path
