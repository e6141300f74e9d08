# tests/test_webhooks_fawry.py
from datetime import timedelta

from conftest import fawry_payload, fawry_signature, post_fawry, reload, row_counts


def test_paid_callback_approves_payment_and_issues_subscription(client, db_session, example_payment):
    from madrasa_app.models import Notification, Payment, Subscription

    resp = post_fawry(client, fawry_payload("FAWRY_42_7_1700000000"))
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "result": "approved"}

    p = reload(db_session, Payment, 123)
    assert p.status == "approved"
    assert p.webhook_received is True
    assert p.completed_at is not None
    assert p.note == "Fawry Payment - Ref: 981234567"

    subs = db_session.query(Subscription).all()
    assert len(subs) == 1
    sub = subs[0]
    assert (sub.student_id, sub.folder_id, sub.payment_id) == (42, 7, 123)
    assert sub.payment_method == "fawry"
    assert sub.monthly_price == 150
    assert sub.is_active is True
    assert timedelta(days=28) <= sub.end_date - sub.start_date <= timedelta(days=31)

    notes = db_session.query(Notification).all()
    assert len(notes) == 1
    assert notes[0].student_id == 42
    assert notes[0].notification_type == "payment_approved"
    assert notes[0].message == "تم قبول طلب الدفع الخاص بك بنجاح عبر Fawry"


def test_resending_same_callback_changes_nothing(client, db_session, example_payment):
    body = fawry_payload("FAWRY_42_7_1700000000")
    assert post_fawry(client, body).status_code == 200
    after_first = row_counts(db_session)

    for _ in range(4):
        resp = post_fawry(client, body)
        assert resp.status_code == 200
        assert resp.get_json()["result"] == "duplicate"

    counts = row_counts(db_session)
    assert counts["subscriptions"] == after_first["subscriptions"] == 1
    assert counts["notifications"] == after_first["notifications"] == 1
    assert counts["payments"] == 1


def test_wrong_signature_is_rejected_without_writes(client, db_session, example_payment):
    from madrasa_app.models import Payment

    before = row_counts(db_session)
    body = fawry_payload("FAWRY_42_7_1700000000")
    body["messageSignature"] = fawry_signature("FAWRY_42_7_1700000000", "981234567", key="wrong")

    resp = post_fawry(client, body)
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid signature"
    assert row_counts(db_session) == before
    assert reload(db_session, Payment, 123).status == "pending"


def test_missing_signature_is_rejected(client, db_session, example_payment):
    body = fawry_payload("FAWRY_42_7_1700000000")
    del body["messageSignature"]
    before = row_counts(db_session)

    resp = post_fawry(client, body)
    assert resp.status_code == 401
    assert row_counts(db_session) == before


def test_non_json_body_is_rejected(client, db_session, example_payment):
    resp = client.post("/api/payments/fawry/callback", data="merchantRefNumber=x",
                       content_type="application/x-www-form-urlencoded")
    assert resp.status_code == 401


def test_signature_is_case_insensitive(client, db_session, example_payment):
    from madrasa_app.models import Payment

    body = fawry_payload("FAWRY_42_7_1700000000")
    body["messageSignature"] = body["messageSignature"].upper()
    assert post_fawry(client, body).status_code == 200
    assert reload(db_session, Payment, 123).status == "approved"


def test_malformed_order_id_acknowledged_without_writes(client, db_session, example_payment):
    before = row_counts(db_session)
    for ref in ("FAWRY_abc_7_1700000000", "FAWRY_42_7", "PAYMOB_42_7_1700000000", "garbage"):
        resp = post_fawry(client, fawry_payload(ref))
        assert resp.status_code == 200
        assert resp.get_json()["result"] == "malformed"
    assert row_counts(db_session) == before


def test_unknown_order_is_acknowledged(client, db_session, example_payment):
    from madrasa_app.models import WebhookLog

    resp = post_fawry(client, fawry_payload("FAWRY_42_7_1799999999_abcdef"))
    assert resp.status_code == 200
    assert resp.get_json()["result"] == "not_found"
    logs = db_session.query(WebhookLog).all()
    assert [(l.provider, l.result) for l in logs] == [("fawry", "not_found")]


def test_expired_then_stale_paid_stays_expired(client, db_session, example_payment):
    from madrasa_app.models import Payment, Subscription

    resp = post_fawry(client, fawry_payload("FAWRY_42_7_1700000000", status="EXPIRED"))
    assert resp.get_json()["result"] == "rejected"

    resp = post_fawry(client, fawry_payload("FAWRY_42_7_1700000000", status="PAID"))
    assert resp.status_code == 200
    assert resp.get_json()["result"] == "duplicate"

    assert reload(db_session, Payment, 123).status == "expired"
    assert db_session.query(Subscription).count() == 0


def test_terminal_states_are_immutable(client, db_session, example_payment):
    from madrasa_app.models import Payment

    assert post_fawry(client, fawry_payload("FAWRY_42_7_1700000000", status="PAID")).status_code == 200
    for status in ("EXPIRED", "CANCELED", "FAILED", "PAID"):
        post_fawry(client, fawry_payload("FAWRY_42_7_1700000000", status=status))
        assert reload(db_session, Payment, 123).status == "approved"


def test_new_status_leaves_payment_pending(client, db_session, example_payment):
    from madrasa_app.models import Payment

    resp = post_fawry(client, fawry_payload("FAWRY_42_7_1700000000", status="NEW"))
    assert resp.get_json()["result"] == "ignored"
    assert reload(db_session, Payment, 123).status == "pending"


def test_amount_mismatch_is_not_approved(client, db_session, example_payment):
    from madrasa_app.models import Payment, Subscription

    resp = post_fawry(client, fawry_payload("FAWRY_42_7_1700000000", amount="1.00"))
    assert resp.status_code == 200
    assert resp.get_json()["result"] == "mismatch"
    assert reload(db_session, Payment, 123).status == "pending"
    assert db_session.query(Subscription).count() == 0


def test_missing_status_is_acknowledged(client, db_session, example_payment):
    body = fawry_payload("FAWRY_42_7_1700000000")
    del body["orderStatus"]
    before = row_counts(db_session)
    resp = post_fawry(client, body)
    assert resp.status_code == 200
    assert row_counts(db_session) == before


def test_unconfigured_secret_fails_closed(app, client, db_session, example_payment, monkeypatch):
    from madrasa_app.models import Payment
    from madrasa_app.services.signatures import FawrySignatureVerifier

    monkeypatch.setitem(app.extensions["payment_verifiers"], "fawry", FawrySignatureVerifier(""))
    resp = post_fawry(client, fawry_payload("FAWRY_42_7_1700000000"))
    assert resp.status_code == 503
    assert resp.get_json()["code"] == "PROVIDER_NOT_CONFIGURED"
    assert reload(db_session, Payment, 123).status == "pending"


def test_non_ascii_signature_is_rejected_without_writes(client, db_session, example_payment):
    from madrasa_app.models import Payment

    before = row_counts(db_session)
    body = fawry_payload("FAWRY_42_7_1700000000", messageSignature="توقيع")

    resp = post_fawry(client, body)
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid signature"
    assert row_counts(db_session) == before
    assert reload(db_session, Payment, 123).status == "pending"
