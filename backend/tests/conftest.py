"""
Shared fixtures for the records portal test suite.

Provides:
- A temporary SQLite database (file-backed so the audit worker thread can
  share it with the test session).
- FakeObjectStore: in-memory stand-in with the same interface as
  portal.storage.object_store.ObjectStore.
- An application built through create_app() with both injected, and a
  TestClient that runs the lifespan (audit worker start/stop).
- Helpers to create users and mint their session tokens.
"""

from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import pytest
from fastapi.testclient import TestClient

from portal.core.config import Settings
from portal.core.database import Database
from portal.core.errors import StorageError
from portal.core.security import create_access_token, hash_password
from portal.main import create_app
from portal.models.user import User
from portal.storage.naming import DELIMITER, Folder

TEST_SECRET = "test-secret-key"
DEFAULT_PASSWORD = "correct-horse-battery"


# ============================================================================
# Object store double
# ============================================================================

class FakeObjectStore:
    """
    In-memory object store. `calls` records every operation so tests can
    assert that a denied request never reached storage.
    """

    def __init__(self):
        self.containers: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.failing: Set[str] = set()
        self.closed = False

    # Test setup helpers (not part of the store interface)
    def add_container(self, name: str, folders: Tuple[str, ...] = ()) -> None:
        objects = self.containers.setdefault(name, {})
        for folder in folders:
            objects.setdefault(f"{folder}{DELIMITER}", {"data": b"", "content_type": None})

    def put(self, container: str, key: str, data: bytes = b"data", content_type: Optional[str] = None) -> None:
        self.containers[container][key] = {"data": data, "content_type": content_type}

    def _touch(self, operation: str, container: str = "") -> None:
        self.calls.append((operation, container))
        if operation in self.failing:
            raise StorageError(detail=f"{operation} failed: store unavailable")

    # Store interface
    def list_containers(self, prefix: str = "") -> List[str]:
        self._touch("list_containers")
        return sorted(name for name in self.containers if name.startswith(prefix))

    def container_exists(self, container: str) -> bool:
        self._touch("container_exists", container)
        return container in self.containers

    def list_folders(self, container: str, prefix: str = "") -> List[str]:
        self._touch("list_folders", container)
        folders = {
            key.split(DELIMITER, 1)[0]
            for key in self.containers[container]
            if DELIMITER in key
        }
        return sorted(f for f in folders if f.startswith(prefix))

    def list_blobs(self, container: str, folder: Folder) -> List[Dict[str, Any]]:
        self._touch("list_blobs", container)
        blobs = []
        for key, obj in sorted(self.containers[container].items()):
            if not key.startswith(folder.prefix) or key == folder.prefix:
                continue
            blobs.append({
                "name": folder.relative_name(key),
                "fullPath": key,
                "contentType": obj["content_type"],
                "contentLength": len(obj["data"]),
                "lastModified": None,
            })
        return blobs

    def blob_exists(self, container: str, key: str) -> bool:
        self._touch("blob_exists", container)
        return key in self.containers.get(container, {})

    def upload_file(self, container: str, key: str, path: str, content_type: Optional[str] = None) -> None:
        self._touch("upload_file", container)
        with open(path, "rb") as f:
            self.put(container, key, f.read(), content_type)

    def delete_blob(self, container: str, key: str) -> None:
        self._touch("delete_blob", container)
        self.containers[container].pop(key, None)

    def presign(self, client_method: str, container: str, key: str, expires_in: int) -> str:
        self._touch("presign", container)
        return f"https://objects.test/{container}/{key}?method={client_method}&expires={expires_in}"

    def close(self) -> None:
        self.closed = True


# ============================================================================
# Core fixtures
# ============================================================================

@pytest.fixture
def settings(tmp_path) -> Settings:
    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()
    return Settings(
        APP_ENV="test",
        LOG_LEVEL="WARNING",
        DATABASE_URL=f"sqlite:///{tmp_path / 'portal.db'}",
        DB_AUTO_CREATE=True,
        JWT_SECRET_KEY=TEST_SECRET,
        UPLOAD_TMP_DIR=str(upload_dir),
    )


@pytest.fixture
def database(settings):
    db = Database(settings.DATABASE_URL)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def object_store() -> FakeObjectStore:
    store = FakeObjectStore()
    store.add_container("cph-container1", folders=("Patient_Data_001",))
    store.add_container("cph-container3", folders=("Patient_Data_001", "Patient_Data_002", "Patient_Data_099"))
    store.add_container("other-bucket")
    return store


@pytest.fixture
def app(settings, database, object_store):
    return create_app(settings=settings, database=database, object_store=object_store)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def flush_audit(app) -> Callable[[], None]:
    """Block until the audit worker has written everything queued so far."""
    return lambda: app.state.audit_recorder.flush()


# ============================================================================
# User helpers
# ============================================================================

@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    def _make_user(login_name: str, role: str, name: Optional[str] = None, password: str = DEFAULT_PASSWORD) -> User:
        user = User(
            name=name or login_name.title(),
            username=login_name,
            password_hash=hash_password(password),
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


def token_for(user: User) -> str:
    return create_access_token(
        {"sub": str(user.id), "role": user.role},
        secret_key=TEST_SECRET,
        expires_minutes=60,
    )


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    return lambda user: {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def admin(make_user) -> User:
    return make_user("admin", "admin", name="Ada Admin")


@pytest.fixture
def doctor(make_user) -> User:
    return make_user("drhouse", "doctor", name="Greg House")


@pytest.fixture
def nurse(make_user) -> User:
    return make_user("njackie", "nurse", name="Jackie Peyton")


@pytest.fixture
def assistant(make_user) -> User:
    return make_user("aassist", "assistant", name="Sam Assist")
