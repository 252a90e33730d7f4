"""
Shared fixtures: an application per test with fresh stores and in-process
fakes for the payment provider, object storage and language model.
"""

import asyncio
import json
import os

# Settings are read at import time
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["REDIS_ENABLED"] = "false"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ["PRODUCTION"] = "false"

from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from main import create_app
from skillforge.core.config import settings
from skillforge.core.database import Database
from skillforge.core.exceptions import (
    AIServiceUnavailable,
    UpstreamUnavailable,
    ValidationFailed,
)
from skillforge.core.hasher import PasswordHelper
from skillforge.models.course import CourseLevel
from skillforge.models.user import User, UserRole
from skillforge.utils.ai import Completion
from skillforge.utils.payment_gateway import (
    GatewayEvent,
    GatewayIntent,
    GatewayRefund,
    PaymentGateway,
)
from skillforge.utils.storage import ObjectStorage, StoredFile

DEFAULT_PASSWORD = "secret123"
VALID_SIGNATURE = "t=1,v1=valid"


# ==================== Fakes ====================


class FakePaymentGateway(PaymentGateway):
    """Stripe stand-in; intents start in requires_payment_method."""

    def __init__(self):
        self.intents: Dict[str, GatewayIntent] = {}
        self.refunds: List[GatewayRefund] = []
        self.unavailable = False

    def create_intent(self, amount, currency, metadata):
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = GatewayIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret",
            status="requires_payment_method",
            amount=amount,
            currency=currency.lower(),
        )
        self.intents[intent_id] = intent
        return intent

    def set_status(self, intent_id: str, status: str) -> None:
        self.intents[intent_id] = self.intents[intent_id].model_copy(
            update={"status": status}
        )

    def retrieve_intent(self, intent_id):
        if self.unavailable:
            raise UpstreamUnavailable("Failed to retrieve payment intent")
        return self.intents[intent_id]

    def refund(self, intent_id, amount=None, reason=None):
        refund = GatewayRefund(
            id=f"re_test_{len(self.refunds) + 1}",
            status="succeeded",
            amount=amount if amount is not None else self.intents[intent_id].amount,
        )
        self.refunds.append(refund)
        return refund

    def construct_event(self, payload, signature):
        if signature != VALID_SIGNATURE:
            raise ValidationFailed("Webhook signature verification failed")
        event = json.loads(payload)
        return GatewayEvent(
            id=event["id"],
            type=event["type"],
            payment_intent_id=event.get("paymentIntentId"),
            amount_refunded=event.get("amountRefunded"),
        )


class FakeStorage(ObjectStorage):
    """S3 stand-in; records any call made from the event loop thread."""

    def __init__(self):
        self.uploaded: List[StoredFile] = []
        self.deleted: List[str] = []
        self.loop_calls: List[str] = []

    def _check_thread(self, operation: str) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self.loop_calls.append(operation)

    def upload_file(self, content, filename, content_type, folder="uploads"):
        self._check_thread("upload_file")
        key = f"{folder}/{len(self.uploaded) + 1}-{filename}"
        stored = StoredFile(
            url=f"https://files.skillforge.test/{key}",
            key=key,
            size=len(content),
            content_type=content_type,
            original_name=filename,
        )
        self.uploaded.append(stored)
        return stored

    def delete_url(self, url):
        self._check_thread("delete_url")
        if not url.startswith("https://files.skillforge.test/"):
            return False
        self.deleted.append(url)
        return True

    def signed_url(self, url, expires_in=None):
        self._check_thread("signed_url")
        if not url.startswith("https://files.skillforge.test/"):
            return url
        return f"{url}?expires={expires_in or 3600}&signature=fake"


class FakeLanguageModel:
    """Replies are served in order; the last one repeats."""

    def __init__(self):
        self.replies: List[str] = ['{"answer": "Fake answer"}']
        self.fail = False
        self.calls: List[dict] = []
        self.tokens_per_call = 42

    def reply_with(self, *replies) -> None:
        self.replies = [
            reply if isinstance(reply, str) else json.dumps(reply) for reply in replies
        ]

    async def generate_completion(
        self, prompt, system_message=None, temperature=0.7, max_tokens=None
    ):
        self.calls.append(
            {
                "prompt": prompt,
                "system_message": system_message,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.fail:
            raise AIServiceUnavailable()
        text = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return Completion(text=text, total_tokens=self.tokens_per_call)

    async def close(self):
        pass


# ==================== Application ====================


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def llm():
    return FakeLanguageModel()


@pytest.fixture
def db():
    return Database()


@pytest.fixture
def app(db, gateway, storage, llm):
    return create_app(
        config=settings,
        database=db,
        payment_gateway=gateway,
        storage=storage,
        language_model=llm,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


# ==================== Accounts ====================


class Account:
    def __init__(self, user: User, token: str, password: str):
        self.user = user
        self.id = user.id
        self.email = user.email
        self.password = password
        self.token = token
        self.headers = {"Authorization": f"Bearer {token}"}


@pytest.fixture
def create_account(app, db):
    """Insert a user directly and issue an access token for it."""
    counter = {"n": 0}

    def _create(
        role: UserRole = UserRole.STUDENT,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        **fields,
    ) -> Account:
        counter["n"] += 1
        user = db.users.create_user(
            {
                "email": email or f"{role.value}{counter['n']}@skillforge.com",
                "password": PasswordHelper.hash_password(password),
                "first_name": fields.pop("first_name", role.value.title()),
                "last_name": fields.pop("last_name", f"Number{counter['n']}"),
                "role": role,
                **fields,
            }
        )
        token = app.state.jwt_manager.create_access_token(user)
        return Account(user, token, password)

    return _create


@pytest.fixture
def student(create_account):
    return create_account(UserRole.STUDENT)


@pytest.fixture
def instructor(create_account):
    return create_account(UserRole.INSTRUCTOR, first_name="Ada", last_name="Lovelace")


@pytest.fixture
def admin(create_account):
    return create_account(UserRole.ADMIN)


# ==================== Courses ====================


@pytest.fixture
def course_payload():
    def _payload(**overrides) -> dict:
        payload = {
            "title": "Python for Data Analysis",
            "description": (
                "A practical introduction to analysing data with Python, "
                "covering tabular data, cleaning and visualisation."
            ),
            "shortDescription": "Analyse real data sets with Python",
            "category": "Programming",
            "subcategory": "Data Science",
            "level": "beginner",
            "price": 49.99,
            "duration": 600,
            "tags": ["python", "data"],
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def create_course(db):
    """Insert a course directly into the store."""

    def _create(owner: Account, published: bool = True, **fields):
        data = {
            "title": "Python for Data Analysis",
            "description": "A practical introduction to analysing data with Python.",
            "short_description": "Analyse real data sets with Python",
            "instructor_id": owner.id,
            "instructor_name": owner.user.full_name,
            "category": "Programming",
            "subcategory": "Data Science",
            "level": CourseLevel.BEGINNER,
            "price": 49.99,
            "currency": "USD",
            "thumbnail": settings.default_course_thumbnail,
            "duration": 600,
            "tags": ["python", "data"],
            "is_published": published,
        }
        data.update(fields)
        return db.courses.create(data)

    return _create


@pytest.fixture
def purchase(client, gateway):
    """Create and confirm a payment for a course; returns the intent id."""

    def _purchase(account: Account, course_id: str) -> str:
        response = client.post(
            "/api/payments/create-intent",
            json={"courseId": course_id},
            headers=account.headers,
        )
        assert response.status_code == 200, response.json()
        intent_id = response.json()["data"]["paymentIntentId"]
        gateway.set_status(intent_id, "succeeded")
        response = client.post(
            "/api/payments/confirm",
            json={"paymentIntentId": intent_id},
            headers=account.headers,
        )
        assert response.status_code == 200, response.json()
        return intent_id

    return _purchase
