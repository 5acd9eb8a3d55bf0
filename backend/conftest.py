"""
Pytest configuration file for backend testing.
"""
import os
import sys
from pathlib import Path

# Settings are read on first import of core; point them at an in-memory database
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DEBUG", "false")

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from core.database import import_models  # noqa: E402

# Register every mapper before any test builds a session
import_models()
