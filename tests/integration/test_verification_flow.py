"""
Integration tests for the contact verification flow.

Drives the API against the PostgreSQL adapters: submit contacts, confirm
the emailed code, resubmit, and revoke the session token.
"""

import logging
import re
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import PostgresAccountRepository
from src.api.dependencies import LOGIN_PURPOSE, Services, build_services
from src.api.main import app
from src.config.settings import Settings

pytestmark = pytest.mark.integration


@pytest.fixture
def mail_sender() -> Mock:
    return Mock()


@pytest.fixture
def services(clean_pool: ConnectionPool, mail_sender: Mock) -> Services:
    settings = Settings(check_hash_rounds=4)
    return build_services(settings, pool=clean_pool, mail_sender=mail_sender)


@pytest.fixture
def client(clean_pool: ConnectionPool, services: Services) -> TestClient:
    """Create test client wired to the test database."""
    # Lifespan is not run; state is set directly
    app.state.pool = clean_pool
    app.state.services = services
    return TestClient(app)


@pytest.fixture
def auth(clean_pool: ConnectionPool, services: Services) -> dict[str, str]:
    account = PostgresAccountRepository(clean_pool).create("alice", email="a@x.com")
    token = services.tokens.upsert(account, LOGIN_PURPOSE)
    return {"Authorization": f"Bearer {token.value}"}


def _emailed_code(mail_sender: Mock) -> str:
    html = mail_sender.send.call_args[0][0].html
    return re.search(r"<strong>(\d+)</strong>", html).group(1)


class TestContactVerificationFlow:
    """Complete submit / confirm / resubmit cycle."""

    def test_full_flow(
        self,
        client: TestClient,
        auth: dict[str, str],
        mail_sender: Mock,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO):
            submitted = client.post(
                "/v1/verification/level-2",
                json={"email": "a@x.com", "phone": "+1000"},
                headers=auth,
            )
        assert submitted.status_code == 200
        assert submitted.json()["payload"]["is_email_confirmed"] is False
        assert mail_sender.send.call_count == 1

        phone_code = re.search(r"Phone: \+1000 Code: (\d+)", caplog.text).group(1)
        confirmed = client.post(
            "/v1/verification/level-2/confirm",
            json={"email_code": _emailed_code(mail_sender), "phone_code": phone_code},
            headers=auth,
        )
        assert confirmed.status_code == 200
        assert confirmed.json() == {
            "is_email_tried": True,
            "is_email_verified": True,
            "is_phone_tried": True,
            "is_phone_verified": True,
        }

        mail_sender.reset_mock()
        resubmitted = client.post(
            "/v1/verification/level-2",
            json={"email": "a@x.com", "phone": "+1000"},
            headers=auth,
        )
        payload = resubmitted.json()["payload"]
        assert payload["is_email_confirmed"] is True
        assert payload["is_phone_confirmed"] is True
        mail_sender.send.assert_not_called()

        profile = client.get("/v1/profile", headers=auth).json()
        assert [r["level"] for r in profile["requests"]] == ["level-2"]

    def test_wrong_code_then_right_code(
        self, client: TestClient, auth: dict[str, str], mail_sender: Mock
    ) -> None:
        client.post("/v1/verification/level-2", json={"email": "a@x.com"}, headers=auth)
        code = _emailed_code(mail_sender)
        wrong = code[:-1] + str((int(code[-1]) + 1) % 10)

        first = client.post(
            "/v1/verification/level-2/confirm", json={"email_code": wrong}, headers=auth
        )
        second = client.post(
            "/v1/verification/level-2/confirm", json={"email_code": code}, headers=auth
        )

        assert first.json()["is_email_verified"] is False
        assert second.json()["is_email_verified"] is True

    def test_revoke_token(self, client: TestClient, auth: dict[str, str]) -> None:
        revoked = client.delete("/v1/tokens/current", headers=auth)
        after = client.get("/v1/profile", headers=auth)

        assert revoked.status_code == 200
        assert after.status_code == 401


class TestHealth:
    def test_health_pings_database(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}
