import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# ---- test DB path and templates (set before the app modules are imported) ----
_TMP_DIR = Path(tempfile.mkdtemp(prefix="equip_app_"))
os.environ.pop("APP_DATABASE_URL", None)
os.environ["APP_DB_PATH"] = str(_TMP_DIR / "test_equip.db")
os.environ["APP_TEMPLATES_DIR"] = str(_TMP_DIR / "templates")

# ---- minimal templates so the UI routes render ----
_TEMPLATES = {
    "assets.html": "<html><body>assets ok ({{ assets|length }}) {{ error or '' }}</body></html>",
    "asset_edit.html": "<html><body>edit ok {{ asset.name }} loans={{ loans|length }}</body></html>",
    "borrowers.html": "<html><body>borrowers ok {% for b in borrowers %}{{ b.full_name }};{% endfor %}</body></html>",
    "loans.html": (
        "<html><body>loans ok "
        "{% for l in loans %}{{ l.asset.asset_tag }}:{{ l.state }};{% endfor %}"
        " assets={{ assets|length }} borrowers={{ borrowers|length }}</body></html>"
    ),
}
(_TMP_DIR / "templates").mkdir(parents=True, exist_ok=True)
for _name, _body in _TEMPLATES.items():
    (_TMP_DIR / "templates" / _name).write_text(_body, encoding="utf-8")


@pytest.fixture(scope="session")
def app_module():
    import main

    return main


@pytest.fixture()
def client(app_module):
    import db
    import dependencies

    # override get_db with the test SessionLocal
    def _get_db_override():
        session = db.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app_module.app.dependency_overrides[dependencies.get_db] = _get_db_override
    with TestClient(app_module.app) as c:
        yield c
    app_module.app.dependency_overrides.clear()


@pytest.fixture()
def db_session(app_module):
    import db

    session = db.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def clean_db(app_module, db_session):
    # wipe every table before each test (loans first, then assets/borrowers)
    from sqlalchemy import delete
    from orm import LoanORM, AssetORM, BorrowerORM

    db_session.execute(delete(LoanORM))
    db_session.execute(delete(AssetORM))
    db_session.execute(delete(BorrowerORM))
    db_session.commit()
    yield


@pytest.fixture()
def make_asset(client):
    def _make(name="Projector", tag="P-001", **extra):
        body = {"name": name, "asset_tag": tag, **extra}
        r = client.post("/assets", json=body)
        assert r.status_code == 201, r.text
        return r.json()

    return _make


@pytest.fixture()
def make_borrower(client):
    def _make(full_name="Alice", department="IT", **extra):
        body = {"full_name": full_name, "department": department, **extra}
        r = client.post("/borrowers", json=body)
        assert r.status_code == 201, r.text
        return r.json()

    return _make
