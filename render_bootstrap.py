"""Production bootstrapper for Render and Railway deployments.

Platforms that expect a Python entry point (``python render_bootstrap.py``)
use this to start the Streamlit server on the platform port, pointing the
data directory at a persistent volume when one is mounted.
"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

APP_SCRIPT = "main.py"
VOLUME_CANDIDATES = ("/data", "/opt/render/project/.data")


def preferred_storage_dir() -> Optional[Path]:
    """Return a writable directory for application data if one is obvious."""

    configured_dir = os.getenv("APP_STORAGE_DIR")
    if configured_dir:
        return Path(configured_dir)

    for candidate in (os.getenv("RAILWAY_VOLUME_MOUNT_PATH"), *VOLUME_CANDIDATES):
        if candidate and Path(candidate).exists():
            return Path(candidate) / "controlarva"

    return None


def streamlit_command(app_script: Path, port: str) -> List[str]:
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(app_script),
        "--server.port",
        str(port),
        "--server.address",
        "0.0.0.0",
        "--server.headless",
        "true",
    ]


def main() -> None:
    root_dir = Path(__file__).resolve().parent
    app_script = root_dir / APP_SCRIPT
    if not app_script.exists():
        raise SystemExit(
            f"Expected '{APP_SCRIPT}' next to render_bootstrap.py, but it was not found."
        )

    storage_dir = preferred_storage_dir()
    if storage_dir is not None:
        storage_dir.mkdir(parents=True, exist_ok=True)
        os.environ.setdefault("APP_STORAGE_DIR", str(storage_dir))

    os.environ.setdefault("BROWSER", "none")
    command = streamlit_command(app_script, os.getenv("PORT", "8501"))
    subprocess.run(command, check=True, cwd=root_dir)


if __name__ == "__main__":
    main()
