"""Tests for trigger/admin request authentication."""

import base64
import json
from unittest.mock import MagicMock, patch

import pytest

from petly.api.task_auth import (
    INTERNAL_SECRET_HEADER,
    LOCAL_DEV_AUDIENCE,
    _unverified_claim,
    verify_trigger_auth,
    verify_trigger_oidc,
)

AUDIENCE = "https://petly-worker.run.app"
SERVICE_ACCOUNT = "eventarc@petly.iam.gserviceaccount.com"


def _request(headers):
    request = MagicMock()
    request.headers = headers
    return request


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("TRIGGERS_OIDC_SERVICE_ACCOUNT", raising=False)
    monkeypatch.delenv("INTERNAL_TRIGGER_SECRET", raising=False)
    monkeypatch.setenv("TRIGGERS_OIDC_AUDIENCE", AUDIENCE)


class TestVerifyOidc:
    def test_missing_audience_fails_closed(self, monkeypatch):
        monkeypatch.delenv("TRIGGERS_OIDC_AUDIENCE")
        with patch("petly.api.task_auth.id_token.verify_oauth2_token") as mock_verify:
            assert verify_trigger_oidc("token") is False
        mock_verify.assert_not_called()

    def test_empty_token(self):
        assert verify_trigger_oidc("") is False

    def test_valid_token(self):
        with patch(
            "petly.api.task_auth.id_token.verify_oauth2_token",
            return_value={"email": SERVICE_ACCOUNT},
        ) as mock_verify:
            assert verify_trigger_oidc("token") is True
        assert mock_verify.call_args.kwargs["audience"] == AUDIENCE

    def test_invalid_token(self):
        with patch(
            "petly.api.task_auth.id_token.verify_oauth2_token",
            side_effect=ValueError("Token has wrong audience"),
        ):
            assert verify_trigger_oidc("not.a.jwt") is False

    def test_service_account_match(self, monkeypatch):
        monkeypatch.setenv("TRIGGERS_OIDC_SERVICE_ACCOUNT", SERVICE_ACCOUNT)
        with patch(
            "petly.api.task_auth.id_token.verify_oauth2_token",
            return_value={"email": SERVICE_ACCOUNT},
        ):
            assert verify_trigger_oidc("token") is True

    def test_service_account_mismatch(self, monkeypatch):
        monkeypatch.setenv("TRIGGERS_OIDC_SERVICE_ACCOUNT", SERVICE_ACCOUNT)
        with patch(
            "petly.api.task_auth.id_token.verify_oauth2_token",
            return_value={"email": "someone@else.com"},
        ):
            assert verify_trigger_oidc("token") is False


class TestVerifyTriggerAuth:
    def test_missing_bearer(self):
        assert verify_trigger_auth(_request({})) is False

    def test_bearer_is_verified(self):
        with patch(
            "petly.api.task_auth.verify_trigger_oidc", return_value=True
        ) as mock_verify:
            assert verify_trigger_auth(_request({"Authorization": "Bearer abc"})) is True
        mock_verify.assert_called_once_with("abc")

    def test_local_secret_accepted(self, monkeypatch):
        monkeypatch.setenv("TRIGGERS_OIDC_AUDIENCE", LOCAL_DEV_AUDIENCE)
        monkeypatch.setenv("INTERNAL_TRIGGER_SECRET", "s3cret")
        assert verify_trigger_auth(_request({INTERNAL_SECRET_HEADER: "s3cret"})) is True

    def test_local_secret_wrong_value(self, monkeypatch):
        monkeypatch.setenv("TRIGGERS_OIDC_AUDIENCE", LOCAL_DEV_AUDIENCE)
        monkeypatch.setenv("INTERNAL_TRIGGER_SECRET", "s3cret")
        assert verify_trigger_auth(_request({INTERNAL_SECRET_HEADER: "nope"})) is False

    def test_secret_ignored_outside_local_audience(self, monkeypatch):
        monkeypatch.setenv("INTERNAL_TRIGGER_SECRET", "s3cret")
        assert verify_trigger_auth(_request({INTERNAL_SECRET_HEADER: "s3cret"})) is False

    def test_empty_secret_never_matches(self, monkeypatch):
        monkeypatch.setenv("TRIGGERS_OIDC_AUDIENCE", LOCAL_DEV_AUDIENCE)
        assert verify_trigger_auth(_request({INTERNAL_SECRET_HEADER: ""})) is False


class TestUnverifiedClaim:
    def test_reads_claim(self):
        body = base64.urlsafe_b64encode(json.dumps({"aud": "x"}).encode()).decode()
        assert _unverified_claim(f"h.{body.rstrip('=')}.s", "aud") == "x"

    def test_garbage(self):
        assert _unverified_claim("garbage", "aud") is None
