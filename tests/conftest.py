import os
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]

# Isolate all tests to a throwaway instance + SQLite database
TEST_INSTANCE_DIR = ROOT_DIR / ".pytest-instance"
TEST_INSTANCE_DIR.mkdir(parents=True, exist_ok=True)
TEST_DB_PATH = TEST_INSTANCE_DIR / "test.sqlite"
os.environ["FLASK_ENV"] = "development"
os.environ["INSTANCE_DIR"] = str(TEST_INSTANCE_DIR)
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH.as_posix()}"
os.environ["ENABLE_TALISMAN"] = "0"
os.environ["RATELIMIT_ENABLED"] = "0"
os.environ["CACHE_TYPE"] = "NullCache"

from extensions import db  # noqa: E402  pylint:disable=wrong-import-position
from models import Player, User  # noqa: E402
import app as dl_app  # noqa: E402

create_app = dl_app.create_app


@pytest.fixture(scope="session")
def app():
    flask_app = create_app()
    flask_app.config.update(
        TESTING=True,
        WTF_CSRF_ENABLED=False,
        SERVER_NAME="localhost",
    )
    with flask_app.app_context():
        db.session.configure(expire_on_commit=False)
    return flask_app


@pytest.fixture
def db_session(app):
    # Requests push their own app context; keeping one open here would share `g` (and the
    # signed-in user) across every request in a test.
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
        if TEST_DB_PATH.exists():
            TEST_DB_PATH.unlink()
        for suffix in ("-wal", "-shm"):
            sidecar = TEST_DB_PATH.with_name(TEST_DB_PATH.name + suffix)
            if sidecar.exists():
                sidecar.unlink()
        db.create_all()
    yield db
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
        db.drop_all()


@pytest.fixture
def client(app, db_session):  # noqa: ARG001 - keeps DB initialised for request tests
    return app.test_client()


@pytest.fixture
def create_user(app, db_session):  # noqa: ARG001
    def _create_user(
        *,
        email: str = "user@example.com",
        username: str = "user",
        password: str = "password123",
        display_name: str | None = None,
    ) -> tuple[User, str]:
        with app.app_context():
            user = User(email=email.lower().strip(), username=username.lower().strip())
            user.set_password(password)
            db.session.add(user)
            db.session.flush()
            db.session.add(Player(user_id=user.id, username=user.username, display_name=display_name))
            db.session.commit()
        return user, password

    return _create_user


@pytest.fixture
def login(client, create_user):
    """Create an account and sign the test client in as it."""

    def _login(**kwargs) -> User:
        user, password = create_user(**kwargs)
        client.post("/login", data={"identifier": user.email, "password": password})
        return user

    return _login
