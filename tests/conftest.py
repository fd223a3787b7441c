import os
import sys
import tempfile

# configuration is read when app.py is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["COOKIE_INSECURE"] = "1"
os.environ["UPLOAD_ROOT"] = tempfile.mkdtemp(prefix="wedding-uploads-")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest

from app import app as flask_app
from models import db
from storage import storage

ADMIN_PASSWORD = "secret123"


@pytest.fixture
def app(tmp_path):
    flask_app.config.update(TESTING=True, UPLOAD_ROOT=str(tmp_path / "uploads"))
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin(app):
    return storage.users.create("admin", ADMIN_PASSWORD, email="admin@example.com")


@pytest.fixture
def admin_client(client, admin):
    resp = client.post("/api/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client
