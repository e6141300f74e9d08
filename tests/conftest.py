# tests/conftest.py
# -*- coding: utf-8 -*-
import os
import sys
import json
import hmac
import hashlib
import pathlib
import tempfile
import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import event, func, select

FAWRY_SECURE_KEY = "fawry-test-secure-key"
FAWRY_MERCHANT_CODE = "TESTMERCHANT"
PAYMOB_HMAC_SECRET = "paymob-test-hmac"


# =====================================================================================
# Project root on sys.path (so "config" and "madrasa_app" import without an install)
# =====================================================================================
def _add_project_root():
    here = pathlib.Path(__file__).resolve()
    for candidate in [here.parent, *here.parents]:
        if (candidate / "madrasa_app").is_dir():
            if str(candidate) not in sys.path:
                sys.path.insert(0, str(candidate))
            return candidate
    return None


PROJECT_ROOT = _add_project_root()


@pytest.fixture(autouse=True, scope="session")
def _testing_env():
    os.environ["APP_ENV"] = "testing"
    os.environ["DISABLE_SCHEDULER"] = "1"
    os.environ.setdefault("SECRET_KEY", "testing-secret")
    yield


def _set_sqlite_pragmas(dbapi_conn, _conn_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


# =====================================================================================
# Flask app on a temporary SQLite file, schema created once per session
# =====================================================================================
@pytest.fixture(scope="session")
def app(_testing_env):
    from config import TestingConfig
    from madrasa_app import create_app
    from madrasa_app.extensions import db

    fd, db_path = tempfile.mkstemp(prefix="madrasa_test_", suffix=".sqlite")
    os.close(fd)

    class _Config(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{db_path}"
        SECRET_KEY = "testing-secret"
        FAWRY_MERCHANT_CODE = FAWRY_MERCHANT_CODE
        FAWRY_SECURE_KEY = FAWRY_SECURE_KEY
        FAWRY_ENV = "sandbox"
        PAYMOB_HMAC_SECRET = PAYMOB_HMAC_SECRET
        PAYMOB_PUBLIC_KEY = "egy_pk_test_123"
        PAYMOB_SECRET_KEY = "egy_sk_test_123"
        PAYMOB_API_URL = "https://paymob.example/v1"

    app = create_app(_Config)

    with app.app_context():
        event.listen(db.engine, "connect", _set_sqlite_pragmas)
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    try:
        os.remove(db_path)
    except OSError:
        pass


# =====================================================================================
# Each test starts from empty tables
# =====================================================================================
@pytest.fixture(autouse=True)
def _clean_tables(app):
    from madrasa_app.extensions import db
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
    yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    from madrasa_app.extensions import db
    with app.app_context():
        try:
            yield db.session
        finally:
            db.session.rollback()
            db.session.close()


# =====================================================================================
# External HTTP (Fawry / PayMob APIs): requests.get/post never hit the network
# =====================================================================================
class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text="OK"):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json


@pytest.fixture(autouse=True)
def provider_http(monkeypatch):
    """Records outbound calls; tests swap ``responses["post"/"get"]`` to shape the reply."""
    import requests

    calls = []
    responses = {"post": FakeResponse(json_data={}), "get": FakeResponse(json_data={})}

    def _post(url, **kwargs):
        calls.append(SimpleNamespace(method="POST", url=url, **kwargs))
        reply = responses["post"]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def _get(url, **kwargs):
        calls.append(SimpleNamespace(method="GET", url=url, **kwargs))
        reply = responses["get"]
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(requests, "post", _post)
    monkeypatch.setattr(requests, "get", _get)
    yield SimpleNamespace(calls=calls, responses=responses)


# =====================================================================================
# Factories
# =====================================================================================
@pytest.fixture
def make_user(db_session):
    from madrasa_app.models import User

    def _make(role="student", **kw):
        kw.setdefault("name", role.title())
        kw.setdefault("email", f"{role}+{uuid.uuid4().hex[:8]}@test.eg")
        u = User(role=role, **kw)
        db_session.add(u)
        db_session.commit()
        return u
    return _make


@pytest.fixture
def teacher(make_user):
    return make_user("teacher", name="أستاذ أحمد")


@pytest.fixture
def student(make_user):
    return make_user("student", name="Student", phone="01000000000")


@pytest.fixture
def owner(make_user):
    return make_user("owner", name="Owner")


@pytest.fixture
def make_folder(db_session, teacher):
    from madrasa_app.models import LessonFolder

    def _make(**kw):
        kw.setdefault("name", "الفيزياء - الصف الثالث")
        kw.setdefault("monthly_price", 150)
        f = LessonFolder(teacher_id=teacher.id, **kw)
        db_session.add(f)
        db_session.commit()
        return f
    return _make


@pytest.fixture
def folder(make_folder):
    return make_folder()


@pytest.fixture
def make_payment(db_session):
    from madrasa_app.models import Payment
    from madrasa_app.services.order_ids import new_order_id

    def _make(student_id, folder_id, provider="fawry", amount=15000, **kw):
        kw.setdefault("merchant_order_id", new_order_id(provider, student_id, folder_id))
        kw.setdefault("subscription_type", "premium")
        kw.setdefault("status", "pending")
        p = Payment(student_id=student_id, folder_id=folder_id, provider=provider,
                    amount=amount, currency="EGP", **kw)
        db_session.add(p)
        db_session.commit()
        return p
    return _make


@pytest.fixture
def example_payment(db_session, make_user, teacher, make_payment):
    """Student 42, folder 7, payment 123 pending on FAWRY_42_7_1700000000."""
    from madrasa_app.models import LessonFolder
    make_user("student", id=42, name="Student 42")
    db_session.add(LessonFolder(id=7, teacher_id=teacher.id, name="Folder 7", monthly_price=150))
    db_session.commit()
    return make_payment(42, 7, provider="fawry", amount=15000, id=123,
                        merchant_order_id="FAWRY_42_7_1700000000")


@pytest.fixture
def owner_client(client, owner):
    with client.session_transaction() as sess:
        sess["user"] = {"id": owner.id, "email": owner.email, "role": "owner"}
    return client


@pytest.fixture
def student_client(client, student):
    with client.session_transaction() as sess:
        sess["user"] = {"id": student.id, "email": student.email, "role": "student"}
    return client


# =====================================================================================
# Signed callbacks
# =====================================================================================
def fawry_signature(merchant_ref, fawry_ref, key=FAWRY_SECURE_KEY):
    return hashlib.sha256(f"{merchant_ref}{fawry_ref}{key}".encode("utf-8")).hexdigest()


def fawry_payload(merchant_ref, status="PAID", fawry_ref="981234567", amount="150.00", **extra):
    body = {
        "requestId": uuid.uuid4().hex,
        "fawryRefNumber": fawry_ref,
        "merchantRefNumber": merchant_ref,
        "orderStatus": status,
        "orderAmount": amount,
        "paymentAmount": amount,
        "paymentMethod": "PAYATFAWRY",
        "messageSignature": fawry_signature(merchant_ref, fawry_ref),
    }
    body.update(extra)
    return body


def paymob_body(merchant_order_id, success=True, status="SUCCESS", amount_cents=15000,
                txn_id=556677, intention_id="pi_test_abc", type_="TRANSACTION"):
    return {
        "type": type_,
        "data": {
            "id": txn_id,
            "success": success,
            "status": status,
            "amount_cents": amount_cents,
            "merchant_order_id": merchant_order_id,
            "intention_id": intention_id,
            "payment_method": "card",
        },
    }


def paymob_signature(raw: bytes, secret=PAYMOB_HMAC_SECRET):
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def post_paymob(client, body, signature=None):
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    sig = paymob_signature(raw) if signature is None else signature
    if sig:
        headers["x-hmac-signature"] = sig
    return client.post("/api/payments/paymob/webhook", data=raw, headers=headers)


def post_fawry(client, body):
    return client.post("/api/payments/fawry/callback", json=body)


def row_counts(session):
    """Row count per table, for before/after comparisons."""
    from madrasa_app.models import Notification, Payment, Subscription, WebhookLog
    session.expire_all()
    return {
        m.__tablename__: session.execute(select(func.count()).select_from(m)).scalar_one()
        for m in (Payment, Subscription, Notification, WebhookLog)
    }


def reload(session, model, pk):
    session.expire_all()
    return session.get(model, pk)
