"""
Test configuration and fixtures for the CWV Auditor API.

DATABASE_URL is pointed at a throwaway sqlite file before the app is
imported, so the settings object and the engine pick it up.
"""

import os
import tempfile
from typing import Generator

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient

load_dotenv()

test_db_url = os.getenv("TEST_DATABASE_URL")
if test_db_url:
    os.environ["DATABASE_URL"] = test_db_url
else:
    test_db_path = os.path.join(tempfile.mkdtemp(), "test_auditor.db")
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"

os.environ["LOG_TO_FILE"] = "false"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "securepassword123"


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from cwv_auditor.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    A fresh TestClient per test. Entering the context runs the lifespan, so
    the audits table exists before any request is made.
    """
    with TestClient(test_app) as test_client:
        yield test_client
