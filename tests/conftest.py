import pytest
from werkzeug.security import generate_password_hash

from app.distro import auth, create_app
from app.distro.db import session_scope
from app.distro.models import Base, User
from app.distro.seed import seed_global_settings, seed_roles_and_permissions

PASSWORD = "secret-pw"

USERS = (
    ("artist@example.com", "Asha Artist", "artist"),
    ("other@example.com", "Omar Other", "artist"),
    ("label@example.com", "Lena Label", "label"),
    ("admin@example.com", "Ada Admin", "admin"),
)


class ApiClient:
    """Test client that sends the session's CSRF token on mutating requests."""

    def __init__(self, client, csrf_token: str | None = None):
        self.client = client
        self.csrf_token = csrf_token

    def _with_csrf(self, kwargs):
        headers = dict(kwargs.pop("headers", None) or {})
        if self.csrf_token:
            headers.setdefault("X-CSRF-Token", self.csrf_token)
        kwargs["headers"] = headers
        return kwargs

    def get(self, url, **kwargs):
        return self.client.get(url, **kwargs)

    def post(self, url, **kwargs):
        return self.client.post(url, **self._with_csrf(kwargs))

    def put(self, url, **kwargs):
        return self.client.put(url, **self._with_csrf(kwargs))

    def patch(self, url, **kwargs):
        return self.client.patch(url, **self._with_csrf(kwargs))

    def delete(self, url, **kwargs):
        return self.client.delete(url, **self._with_csrf(kwargs))


@pytest.fixture(autouse=True)
def _reset_login_rate_limit():
    auth._login_attempts.clear()
    yield
    auth._login_attempts.clear()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("LOCAL_STORAGE_ROOT", str(tmp_path / "storage"))
    for k in (
        "S3_ENDPOINT",
        "S3_REGION",
        "S3_BUCKET",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "EMAILJS_SERVICE_ID",
        "EMAILJS_TEMPLATE_ID",
        "EMAILJS_PUBLIC_KEY",
        "EMAILJS_PRIVATE_KEY",
        "CORS_ORIGINS",
        "DEFAULT_LABEL_NAME",
    ):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        roles = seed_roles_and_permissions(s)
        seed_global_settings(s, default_label="Internet Records")
        for email, name, role_key in USERS:
            u = User(email=email, name=name, password_hash=generate_password_hash(PASSWORD), is_active=True)
            u.roles.append(roles[role_key])
            s.add(u)

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login(app):
    """login(email) -> ApiClient with its own cookie jar, signed in as that user."""

    def _login(email: str, password: str = PASSWORD) -> ApiClient:
        c = app.test_client()
        r = c.post("/api/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.get_json()
        return ApiClient(c, r.get_json()["csrfToken"])

    return _login


@pytest.fixture()
def artist(login):
    return login("artist@example.com")


@pytest.fixture()
def admin(login):
    return login("admin@example.com")


@pytest.fixture()
def user_id(app):
    def _user_id(email: str) -> int:
        with session_scope(app) as s:
            return s.query(User).filter(User.email == email).one().id

    return _user_id
