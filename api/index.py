"""
Serverless function entry point for the admin WebAuthn service.
Settings come from the ADMIN_AUTH_* environment variables.
"""

import os
import sys

current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(current_dir)
server_dir = os.path.join(project_root, "server")
if server_dir not in sys.path:
    sys.path.insert(0, server_dir)

from admin_auth.app import configure_logging, create_app  # noqa: E402

configure_logging()
app = create_app()
