import copy
import io
from datetime import date

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from pydantic.alias_generators import to_camel

from app_config import Settings
from sample_students import SAMPLE_STUDENTS
from server import create_app
from student_documents import STUDENT_COLUMNS, STUDENT_HEADERS, SYSTEM_FIELDS
from student_schemas import StudentCreate
from student_store import StudentStore

FIXED_TODAY = date(2024, 7, 15)


def make_payload(index: int = 1, **overrides):
    """Copy of a sample student (camelCase keys) with overrides applied."""
    payload = copy.deepcopy(SAMPLE_STUDENTS[index])
    payload.update(overrides)
    return payload


def sheet_row(payload):
    return [
        None if field in SYSTEM_FIELDS else payload.get(to_camel(field))
        for _, field, _ in STUDENT_COLUMNS
    ]


def build_workbook(rows) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(STUDENT_HEADERS)
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def store():
    return StudentStore(today=lambda: FIXED_TODAY)


@pytest.fixture
def seeded_store(store):
    for data in SAMPLE_STUDENTS:
        store.create(StudentCreate.model_validate(data))
    return store


@pytest.fixture
def settings():
    return Settings(seed_sample_data=False)


@pytest.fixture
def client(store, settings):
    app = create_app(settings, store=store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seeded_client(seeded_store, settings):
    app = create_app(settings, store=seeded_store)
    with TestClient(app) as test_client:
        yield test_client
