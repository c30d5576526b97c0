import logging
import sys
from pathlib import Path
from typing import Optional, Union


def setup_logging(level: Union[int, str] = logging.INFO, log_dir: Optional[Path] = None) -> None:
    """
    Configure the root logger: stderr always, plus a file under `log_dir` when given.

    Call once at startup, before the first log line.
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Remove any pre-existing handlers to avoid duplicates on reload
    for handler in list(root.handlers):
        root.removeHandler(handler)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(fmt)
    root.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_dir / "jackieslist.log"), encoding="utf-8")
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)

    logging.captureWarnings(True)
