"""Application factory and entry point for the admin WebAuthn service."""
from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Optional, Sequence

from flask import Flask

from .backend import Backend, BackendHandle, build_backend
from .config import Settings, load_settings
from .routes import general_bp, webauthn_bp
from .routes.common import EXTENSION_KEY

__all__ = ["configure_logging", "create_app", "main"]


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    backend: Optional[Backend] = None,
    **backend_options: Any,
) -> Flask:
    """Build the Flask app and resolve its backend exactly once."""

    if backend is not None:
        settings = backend.settings
    elif settings is None:
        settings = load_settings()

    app = Flask(__name__)
    app.secret_key = settings.secret_key or os.urandom(32)
    app.config.update(
        ADMIN_AUTH_RP_ID=settings.rp_id,
        ADMIN_AUTH_RP_NAME=settings.rp_name,
        ADMIN_AUTH_ORIGINS=sorted(settings.origins),
        DEBUG=settings.debug,
    )

    handle = BackendHandle()
    app.extensions[EXTENSION_KEY] = handle

    app.register_blueprint(general_bp)
    app.register_blueprint(webauthn_bp)

    handle.resolve(backend if backend is not None else build_backend(settings, **backend_options))
    return app


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the admin WebAuthn service.")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--cert", help="TLS certificate (PEM)")
    parser.add_argument("--key", help="TLS private key (PEM)")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    configure_logging()
    args = _parse_args(argv)
    app = create_app()

    # WebAuthn needs a secure context: either localhost or a valid TLS
    # certificate, browsers refuse ceremonies on certificate errors.
    ssl_context = (args.cert, args.key) if args.cert and args.key else None
    app.run(host=args.host, port=args.port, ssl_context=ssl_context, debug=app.config["DEBUG"])


if __name__ == "__main__":  # pragma: no cover - convenience script entry point.
    main()
