from __future__ import annotations

import os
import tempfile
from datetime import datetime
from pathlib import Path


def temp_dir() -> Path:
    configured = os.environ.get("SPLITSCRIBE_TMP_DIR", "").strip()
    base = Path(configured).expanduser() if configured else Path(tempfile.gettempdir())
    base.mkdir(parents=True, exist_ok=True)
    return base


def output_dir(configured: str) -> Path:
    path = Path(configured).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return path


def output_path(input_path: Path, out_dir: Path, ext: str, *, now: datetime | None = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return out_dir / f"{input_path.stem}_{stamp}.{ext}"
