import os
import tempfile
import uuid
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
_db_dir = tempfile.mkdtemp(prefix="simdesk-tests-")

# Settings are read at import time, so these must be in place before simdesk is imported.
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["QUESTION_BANK_PATH"] = str(ROOT / "data" / "questions.json")
os.environ["SECRET_KEY"] = "test-secret"
os.environ["UPSTREAM_BASE_URL"] = ""
os.environ["VALIDATOR_SCOPE"] = "resource"

from fastapi.testclient import TestClient  # noqa: E402

from simdesk.main import app  # noqa: E402
from simdesk.services.auth_service import create_access_token  # noqa: E402
from simdesk.services.question_bank import build_bank  # noqa: E402


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def auth_headers(user_id):
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def bank():
    return build_bank([
        {"question": "How do I run a simulation?", "answer": "Press Run."},
        {"question": "How do I save a simulation?", "answer": "Press Save."},
        {"question": "thank you", "answer": "No problem! Happy simulating."},
        {"question": "Can I delete a simulation?", "answer": "Sorry, not yet."},
    ])
