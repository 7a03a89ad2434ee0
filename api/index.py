"""
Serverless entry point for the WildWatch Triage API
"""
import os

os.environ.setdefault("ENVIRONMENT", "production")

from mangum import Mangum  # noqa: E402

from wildwatch.main import app  # noqa: E402

# Lambda handler for ASGI app; lifespan runs once per cold start
handler = Mangum(app, lifespan="auto")
