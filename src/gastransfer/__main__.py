"""Bootstrap entry point for gastransfer.

Installs a file log in the per-user state directory before the CLI runs and
writes the traceback to crash.log on any unhandled exception.
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
from pathlib import Path


def _log_dir() -> Path:
    """Return a writable directory for boot/crash logs."""
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("TEMP") or "."
    else:
        base = os.environ.get("XDG_STATE_HOME") or os.path.expanduser("~/.local/state")
    d = Path(base) / "gastransfer" / "logs"
    try:
        d.mkdir(parents=True, exist_ok=True)
    except OSError:
        d = Path(os.environ.get("TEMP", "/tmp")) / "gastransfer_logs"
        d.mkdir(parents=True, exist_ok=True)
    return d


def _setup_logging() -> logging.Logger:
    # Package loggers propagate to "gastransfer", so solver/selector records land here too.
    root = logging.getLogger("gastransfer")
    root.setLevel(logging.DEBUG)
    try:
        fh = logging.FileHandler(_log_dir() / "boot.log", encoding="utf-8", delay=False)
        fh.setFormatter(
            logging.Formatter("%(asctime)s  %(levelname)s  %(name)s  %(message)s")
        )
        root.addHandler(fh)
    except OSError as exc:
        print(f"warning: file logging disabled ({exc})", file=sys.stderr)
    return logging.getLogger("gastransfer.boot")


def _entry() -> None:
    log = _setup_logging()
    log.info("boot: argv=%s  executable=%s  cwd=%s", sys.argv, sys.executable, os.getcwd())

    from gastransfer.io import package_version

    log.info("gastransfer version: %s  python: %s", package_version(), sys.version)

    try:
        from gastransfer.cli import main

        code = main()
    except SystemExit as exc:
        log.info("CLI exited with code %s", exc.code)
        raise
    except Exception:
        tb = traceback.format_exc()
        crash_file = _log_dir() / "crash.log"
        crash_file.write_text(tb, encoding="utf-8")
        log.critical("unhandled exception:\n%s", tb)
        print(f"fatal: {tb.splitlines()[-1]} (traceback in {crash_file})", file=sys.stderr)
        raise SystemExit(1) from None
    log.info("CLI exited with code %s", code)
    raise SystemExit(code)


if __name__ == "__main__":
    _entry()
