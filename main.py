"""Streamlit entry point for the Controlarva dashboard.

Run with ``streamlit run main.py`` or plain ``python main.py``; the latter
boots the Streamlit server itself using ``PORT``, ``HOST`` (or
``BIND_ADDRESS``) and ``STREAMLIT_SERVER_HEADLESS`` from the environment.
"""
from __future__ import annotations

import logging
import os

from controlarva.config import AppConfig, load_config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(config: AppConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
    )


def _streamlit_runtime_active() -> bool:
    """Return True when running inside a Streamlit runtime."""

    try:
        from streamlit import runtime
    except ImportError:
        return False
    return runtime.exists()


def _streamlit_flag_options_from_env() -> dict[str, object]:
    """Derive Streamlit bootstrap flag options from environment variables."""

    flag_options: dict[str, object] = {}

    port_env = os.getenv("PORT")
    if port_env:
        try:
            port = int(port_env)
        except ValueError:
            port = None
        if port and port > 0:
            flag_options["server.port"] = port

    address_env = os.getenv("HOST") or os.getenv("BIND_ADDRESS")
    flag_options["server.address"] = address_env or "0.0.0.0"

    headless_env = os.getenv("STREAMLIT_SERVER_HEADLESS")
    if headless_env is None:
        flag_options["server.headless"] = True
    else:
        flag_options["server.headless"] = headless_env.strip().lower() in (
            "1",
            "true",
            "yes",
            "on",
        )

    return flag_options


def _bootstrap_streamlit_app() -> None:
    """Launch the Streamlit server when executed via ``python main.py``."""

    from streamlit.web import bootstrap

    bootstrap.run(
        os.path.abspath(__file__),
        False,
        [],
        _streamlit_flag_options_from_env(),
    )


def main() -> None:
    import controlarva_app

    config = load_config()
    configure_logging(config)
    controlarva_app.main(config)


if __name__ == "__main__":
    if _streamlit_runtime_active():
        main()
    else:
        _bootstrap_streamlit_app()
