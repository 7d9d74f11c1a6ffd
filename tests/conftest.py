import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path to allow `import services`, `import models`, etc.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.mocks import RecordingEndpoint, make_dispatcher  # noqa: E402


@pytest.fixture
def endpoint() -> RecordingEndpoint:
    """A webhook receiver that accepts everything."""
    return RecordingEndpoint()


@pytest.fixture
def dispatcher(endpoint):
    """A dispatcher with every endpoint configured, posting to ``endpoint``."""
    return make_dispatcher(endpoint)


@pytest.fixture(autouse=True)
def _clear_webhook_env(monkeypatch):
    """Keep a developer's real webhook and store settings out of the tests."""
    for name in (
        "MAKE_WEBHOOK_URL",
        "MAKE_AI_WEBHOOK_URL",
        "MAKE_ANALYTICS_WEBHOOK_URL",
        "MAKE_ALERTS_WEBHOOK_URL",
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
