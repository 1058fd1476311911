import json
import logging
import os

# Must be set before utils.db.connection reads its settings
os.environ["DB_TYPE"] = "mock"

import pytest

from utils.core.log import set_logger
from utils.db import connection


@pytest.fixture(autouse=True)
def mock_store(monkeypatch):
    monkeypatch.setattr(connection, "DB_TYPE", "mock")
    connection.reset_mock_db()
    yield connection._mock_db
    connection.reset_mock_db()


@pytest.fixture(autouse=True)
def tool_logger():
    set_logger(logging.getLogger("quote_engine.tests"), tool_name="pytest")


class FakeCompletion:
    """Stands in for the completion service; records every prompt it receives."""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def __call__(self, parts):
        self.calls.append(list(parts))
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def reply_for(payload: dict, before: str = "", after: str = "") -> str:
    return before + json.dumps(payload, ensure_ascii=False) + after


@pytest.fixture
def fake_llm():
    return FakeCompletion


SAMPLE_QUOTE = {
    "company": "한빛인테리어",
    "items": [
        {
            "category": "철거",
            "description": "기존 욕실 철거",
            "quantity": 1,
            "unit": "식",
            "unit_price": 500000,
            "amount": 500000,
        },
        {
            "category": "타일",
            "description": "욕실 벽 타일",
            "quantity": 20,
            "unit": "m2",
            "unit_price": 45000,
            "amount": 900000,
        },
    ],
    "total_amount": 1400000,
}


@pytest.fixture
def sample_quote():
    return json.loads(json.dumps(SAMPLE_QUOTE))


@pytest.fixture
def group():
    from utils.db import quote_store

    return quote_store.create_group("34평 아파트 리모델링")
