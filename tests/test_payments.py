import json

import pytest

from conftest import VALID_SIGNATURE
from skillforge.models.payment import PaymentStatus


@pytest.fixture
def paid_course(instructor, create_course):
    return create_course(instructor, title="Paid course", price=49.99)


def create_intent(client, account, course_id):
    return client.post(
        "/api/payments/create-intent", json={"courseId": course_id}, headers=account.headers
    )


def send_webhook(client, event, signature=VALID_SIGNATURE):
    headers = {"Content-Type": "application/json"}
    if signature:
        headers["Stripe-Signature"] = signature
    return client.post("/api/payments/webhook", content=json.dumps(event), headers=headers)


# ==================== Intents ====================


def test_create_intent_records_pending_payment(client, student, paid_course, db):
    response = create_intent(client, student, paid_course.id)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["amount"] == 4999
    assert data["currency"] == "USD"
    assert data["clientSecret"].endswith("_secret")

    payment = db.payments.find_by_provider_id(data["paymentIntentId"])
    assert payment.status == PaymentStatus.PENDING
    assert payment.user_id == student.id
    assert payment.course_id == paid_course.id


def test_create_intent_rejections(client, student, instructor, create_course):
    free = create_course(instructor, price=0)
    draft = create_course(instructor, price=20, published=False)

    assert create_intent(client, student, free.id).status_code == 400
    assert create_intent(client, student, draft.id).status_code == 400
    assert create_intent(client, student, "course_missing").status_code == 404


def test_cannot_buy_a_course_twice(client, student, paid_course, purchase):
    purchase(student, paid_course.id)

    response = create_intent(client, student, paid_course.id)

    assert response.status_code == 409
    assert response.json()["error"] == "Course already purchased"


def test_create_intent_resumes_pending_payment(client, student, paid_course, db):
    first = create_intent(client, student, paid_course.id).json()["data"]

    response = create_intent(client, student, paid_course.id)

    assert response.status_code == 200
    again = response.json()["data"]
    assert again["paymentIntentId"] == first["paymentIntentId"]
    assert again["clientSecret"] == first["clientSecret"]
    assert len(db.payments.find_by_user(student.id)) == 1


def test_create_intent_after_canceled_intent(client, student, paid_course, gateway, db):
    first = create_intent(client, student, paid_course.id).json()["data"]
    gateway.set_status(first["paymentIntentId"], "canceled")

    response = create_intent(client, student, paid_course.id)

    assert response.status_code == 200
    second = response.json()["data"]["paymentIntentId"]
    assert second != first["paymentIntentId"]
    old = db.payments.find_by_provider_id(first["paymentIntentId"])
    assert old.status == PaymentStatus.CANCELED
    assert db.payments.find_pending(student.id, paid_course.id).provider_payment_intent_id == second


def test_only_one_purchase_per_course(client, student, paid_course, gateway, db):
    intent_id = create_intent(client, student, paid_course.id).json()["data"][
        "paymentIntentId"
    ]
    gateway.set_status(intent_id, "succeeded")

    response = create_intent(client, student, paid_course.id)

    assert response.status_code == 409
    assert response.json()["error"] == "Course already purchased"
    assert len(gateway.intents) == 1
    succeeded = [
        p for p in db.payments.find_by_user(student.id)
        if p.status == PaymentStatus.SUCCEEDED
    ]
    assert [p.provider_payment_intent_id for p in succeeded] == [intent_id]


def test_create_intent_rejects_other_currency(client, student, paid_course, gateway):
    response = client.post(
        "/api/payments/create-intent",
        json={"courseId": paid_course.id, "currency": "eur"},
        headers=student.headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Payment currency must be USD"
    assert gateway.intents == {}

    matching = client.post(
        "/api/payments/create-intent",
        json={"courseId": paid_course.id, "currency": "usd"},
        headers=student.headers,
    )
    assert matching.status_code == 200
    assert matching.json()["data"]["currency"] == "USD"


# ==================== Confirmation ====================


def test_confirm_reflects_provider_status(client, student, paid_course, gateway, db):
    intent_id = create_intent(client, student, paid_course.id).json()["data"][
        "paymentIntentId"
    ]

    pending = client.post(
        "/api/payments/confirm", json={"paymentIntentId": intent_id}, headers=student.headers
    )
    assert pending.status_code == 400
    assert pending.json()["error"] == "Payment pending"

    gateway.set_status(intent_id, "succeeded")
    confirmed = client.post(
        "/api/payments/confirm", json={"paymentIntentId": intent_id}, headers=student.headers
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["data"] == {"status": "succeeded", "courseId": paid_course.id}
    assert db.payments.find_by_provider_id(intent_id).status == PaymentStatus.SUCCEEDED


def test_confirm_failed_payment(client, student, paid_course, gateway, db):
    intent_id = create_intent(client, student, paid_course.id).json()["data"][
        "paymentIntentId"
    ]
    gateway.set_status(intent_id, "canceled")

    response = client.post(
        "/api/payments/confirm", json={"paymentIntentId": intent_id}, headers=student.headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Payment canceled"
    assert db.payments.find_by_provider_id(intent_id).status == PaymentStatus.CANCELED


def test_confirm_someone_elses_payment(client, create_account, student, paid_course):
    intent_id = create_intent(client, student, paid_course.id).json()["data"][
        "paymentIntentId"
    ]
    other = create_account()

    response = client.post(
        "/api/payments/confirm", json={"paymentIntentId": intent_id}, headers=other.headers
    )

    assert response.status_code == 403


def test_confirm_unknown_payment(client, student):
    response = client.post(
        "/api/payments/confirm", json={"paymentIntentId": "pi_missing"}, headers=student.headers
    )

    assert response.status_code == 404


# ==================== Refunds ====================


def test_full_refund(client, student, paid_course, purchase, gateway, db):
    intent_id = purchase(student, paid_course.id)

    response = client.post(
        "/api/payments/refund",
        json={"paymentIntentId": intent_id, "reason": "Changed my mind"},
        headers=student.headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["amount"] == 49.99
    assert data["status"] == "refunded"
    assert gateway.refunds[0].amount == 4999

    payment = db.payments.find_by_provider_id(intent_id)
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refunded_amount == 4999


def test_refund_more_than_paid(client, student, paid_course, purchase):
    intent_id = purchase(student, paid_course.id)

    response = client.post(
        "/api/payments/refund",
        json={"paymentIntentId": intent_id, "amount": 100},
        headers=student.headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Refund amount exceeds payment amount"


def test_refund_requires_succeeded_payment(client, student, paid_course, gateway):
    intent_id = create_intent(client, student, paid_course.id).json()["data"][
        "paymentIntentId"
    ]

    response = client.post(
        "/api/payments/refund", json={"paymentIntentId": intent_id}, headers=student.headers
    )

    assert response.status_code == 409
    assert gateway.refunds == []


def test_refund_amount_must_be_positive(client, student, paid_course, purchase):
    intent_id = purchase(student, paid_course.id)

    response = client.post(
        "/api/payments/refund",
        json={"paymentIntentId": intent_id, "amount": 0},
        headers=student.headers,
    )

    assert response.status_code == 400


# ==================== Webhooks ====================


def test_webhook_requires_signature(client):
    event = {"id": "evt_1", "type": "payment_intent.succeeded", "paymentIntentId": "pi_1"}

    missing = send_webhook(client, event, signature=None)
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing Stripe-Signature header"

    invalid = send_webhook(client, event, signature="t=1,v1=forged")
    assert invalid.status_code == 400


def test_webhook_marks_payment_succeeded_once(client, student, paid_course, db):
    intent_id = create_intent(client, student, paid_course.id).json()["data"][
        "paymentIntentId"
    ]
    event = {"id": "evt_paid", "type": "payment_intent.succeeded", "paymentIntentId": intent_id}

    first = send_webhook(client, event)
    replay = send_webhook(client, event)

    assert first.status_code == 200
    assert first.json() == {"received": True}
    assert replay.status_code == 200

    payment = db.payments.find_by_provider_id(intent_id)
    assert payment.status == PaymentStatus.SUCCEEDED
    assert payment.processed_event_ids == ["evt_paid"]


def test_webhook_cannot_undo_success(client, student, paid_course, purchase, db):
    intent_id = purchase(student, paid_course.id)

    send_webhook(
        client,
        {"id": "evt_late_fail", "type": "payment_intent.payment_failed", "paymentIntentId": intent_id},
    )

    assert db.payments.find_by_provider_id(intent_id).status == PaymentStatus.SUCCEEDED


def test_webhook_charge_refunded(client, student, paid_course, purchase, db):
    intent_id = purchase(student, paid_course.id)

    response = send_webhook(
        client,
        {
            "id": "evt_refund",
            "type": "charge.refunded",
            "paymentIntentId": intent_id,
            "amountRefunded": 2000,
        },
    )

    assert response.status_code == 200
    payment = db.payments.find_by_provider_id(intent_id)
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refunded_amount == 2000


def test_webhook_ignores_unknown_events_and_payments(client):
    unknown_type = send_webhook(client, {"id": "evt_x", "type": "customer.created"})
    unknown_payment = send_webhook(
        client,
        {"id": "evt_y", "type": "payment_intent.succeeded", "paymentIntentId": "pi_unknown"},
    )

    assert unknown_type.json() == {"received": True}
    assert unknown_payment.json() == {"received": True}


# ==================== Reads ====================


def test_payment_history_newest_first(client, student, instructor, create_course, purchase):
    first = create_course(instructor, title="First paid course", price=10)
    second = create_course(instructor, title="Second paid course", price=20)
    purchase(student, first.id)
    purchase(student, second.id)

    response = client.get("/api/payments/history", headers=student.headers)

    assert response.status_code == 200
    history = response.json()["data"]
    assert [item["courseTitle"] for item in history] == [
        "Second paid course",
        "First paid course",
    ]
    assert history[0]["amount"] == 20
    assert history[0]["status"] == "succeeded"
    assert response.json()["pagination"]["total"] == 2


def test_history_survives_course_deletion(client, student, paid_course, purchase, db):
    purchase(student, paid_course.id)
    db.courses.delete(paid_course.id)

    history = client.get("/api/payments/history", headers=student.headers).json()["data"]

    assert history[0]["courseTitle"] == "Unknown Course"


def test_payment_details(client, student, paid_course, purchase):
    intent_id = purchase(student, paid_course.id)

    response = client.get(f"/api/payments/{intent_id}", headers=student.headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["transactionId"] == intent_id
    assert data["userId"] == student.id
    assert data["courseTitle"] == "Paid course"
    assert data["amount"] == 49.99
    assert data["refundedAmount"] == 0
    assert data["providerDetails"] == {
        "status": "succeeded",
        "amount": 49.99,
        "currency": "USD",
    }


def test_payment_details_when_provider_unreachable(
    client, student, paid_course, purchase, gateway
):
    intent_id = purchase(student, paid_course.id)
    gateway.unavailable = True

    response = client.get(f"/api/payments/{intent_id}", headers=student.headers)

    assert response.status_code == 502
    assert response.json()["error"] == "Failed to retrieve payment intent"


def test_payment_stats(
    client, create_account, student, instructor, admin, create_course, purchase
):
    own = create_course(instructor, price=30)
    foreign = create_course(admin, price=70)
    purchase(student, own.id)
    purchase(student, foreign.id)
    purchase(create_account(), own.id)

    mine = client.get("/api/payments/stats/overview", headers=instructor.headers).json()["data"]
    assert mine["totalRevenue"] == 60
    assert mine["successfulPayments"] == 2
    assert mine["averageOrderValue"] == 30

    everything = client.get("/api/payments/stats/overview", headers=admin.headers).json()[
        "data"
    ]
    assert everything["totalRevenue"] == 130
    assert everything["totalTransactions"] == 3
    assert everything["failedPayments"] == 0
