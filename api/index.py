"""
Vercel entry point for the Stayava API.

Wraps the FastAPI app with Mangum so it runs as a serverless function.
Lifespan stays enabled because the lifespan handler builds the store,
completion client and agent.
"""

import os
import sys
from pathlib import Path

backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

os.environ.setdefault("DEBUG", "False")
os.environ.setdefault("TYPING_DELAY_MS", "0")

from app import app as application
from mangum import Mangum

handler = Mangum(application, lifespan="auto")

__all__ = ["handler", "application"]
