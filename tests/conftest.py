import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure project root is on sys.path so 'clubhub' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_URL", "")
os.environ.setdefault("SUPABASE_ANON_KEY", "")
os.environ.setdefault("LOG_FILE", str(Path(tempfile.gettempdir()) / "clubhub-tests.log"))
os.environ.setdefault("LOG_LEVEL", "DEBUG")


@pytest.fixture()
def logger():
    from clubhub.logger import StructuredLogger

    return StructuredLogger(name="clubhub.tests")
