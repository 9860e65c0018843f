import os
import tempfile

import pytest

# Settings are read at import time
TEST_DB = os.path.join(tempfile.mkdtemp(prefix="produce_test_"), "test.db")
os.environ["SQLITE_DATABASE_URI"] = f"sqlite:///{TEST_DB}"
os.environ["AUTO_BACKUP_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402

from produce_app.db.base import Base  # noqa: E402
from produce_app.db import init_db  # noqa: E402,F401
from produce_app.main import app  # noqa: E402

sync_engine = create_engine(f"sqlite:///{TEST_DB}")


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def clean_db():
    """
    Fresh tables for every test.
    """
    Base.metadata.drop_all(bind=sync_engine)
    Base.metadata.create_all(bind=sync_engine)
    yield


API = "/api/v1"


def ok(response):
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True
    return body["data"]


@pytest.fixture
def api(client):
    """
    Thin helper: api.post("/stores", json=...) hits /api/v1/stores.
    """
    class Api:
        def get(self, path, **kw):
            return client.get(API + path, **kw)

        def post(self, path, **kw):
            return client.post(API + path, **kw)

        def put(self, path, **kw):
            return client.put(API + path, **kw)

        def patch(self, path, **kw):
            return client.patch(API + path, **kw)

        def delete(self, path, **kw):
            # DELETE with a JSON body
            return client.request("DELETE", API + path, **kw)

    return Api()


def register(api, email, role="store", **extra):
    payload = {
        "email": email,
        "password": "secret123",
        "name": extra.pop("name", email.split("@")[0]),
        "role": role,
        "store_name": extra.pop("store_name", f"{email.split('@')[0].title()} Market"),
        **extra,
    }
    return ok(api.post("/auth/register", json=payload))


def login(api, email, password="secret123"):
    data = ok(api.post("/auth/login", json={"email": email, "password": password}))
    return {"Authorization": f"Bearer {data['token']}"}
