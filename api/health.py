"""
Health check function for serverless deployment.
The /api/health route itself lives in the application's general blueprint.
"""

from api.index import app

__all__ = ["app"]
