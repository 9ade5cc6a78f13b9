from unittest.mock import MagicMock

import pytest
import resend

from photostore.errors import UpstreamUnavailable
from photostore.mail.mailer import ResendMailer
from photostore.storage.blob_store import SupabaseBlobStore


def test_resend_mailer_sends_payload_and_restores_key(monkeypatch):
    sent = {}

    def fake_send(payload):
        sent["payload"] = payload
        sent["api_key"] = resend.api_key
        return {"id": "re_123"}

    monkeypatch.setattr(resend, "api_key", "previous-key")
    monkeypatch.setattr(resend.Emails, "send", fake_send)

    message_id = ResendMailer(api_key="re_live", sender="Shop <shop@example.com>").send(
        "client@example.com", "Sujet", "texte", "<p>html</p>"
    )

    assert message_id == "re_123"
    assert sent["api_key"] == "re_live"
    assert resend.api_key == "previous-key"
    assert sent["payload"] == {
        "from": "Shop <shop@example.com>",
        "to": ["client@example.com"],
        "subject": "Sujet",
        "text": "texte",
        "html": "<p>html</p>",
    }


def test_resend_mailer_failure_is_upstream_unavailable(monkeypatch):
    monkeypatch.setattr(resend.Emails, "send", MagicMock(side_effect=RuntimeError("422 invalid from")))
    with pytest.raises(UpstreamUnavailable):
        ResendMailer(api_key="re_live", sender="shop@example.com").send("c@example.com", "s", "t", "h")


def test_resend_mailer_requires_configuration(monkeypatch):
    fake_send = MagicMock()
    monkeypatch.setattr(resend.Emails, "send", fake_send)
    with pytest.raises(UpstreamUnavailable):
        ResendMailer(api_key="", sender="shop@example.com").send("c@example.com", "s", "t", "h")
    fake_send.assert_not_called()


def test_resend_mailer_rejects_response_without_id(monkeypatch):
    monkeypatch.setattr(resend.Emails, "send", MagicMock(return_value={}))
    with pytest.raises(UpstreamUnavailable):
        ResendMailer(api_key="re_live", sender="shop@example.com").send("c@example.com", "s", "t", "h")


def _storage_client():
    client = MagicMock()
    bucket = client.storage.from_.return_value
    return client, bucket


def test_blob_store_upload_never_overwrites():
    client, bucket = _storage_client()
    SupabaseBlobStore(client).upload("deliveries", "orders/o1/1-abc.jpg", b"data", "image/jpeg")
    client.storage.from_.assert_called_with("deliveries")
    bucket.upload.assert_called_once_with(
        "orders/o1/1-abc.jpg",
        b"data",
        file_options={"content-type": "image/jpeg", "upsert": "false"},
    )


def test_blob_store_upload_error_is_upstream_unavailable():
    client, bucket = _storage_client()
    bucket.upload.side_effect = RuntimeError("The resource already exists")
    with pytest.raises(UpstreamUnavailable):
        SupabaseBlobStore(client).upload("deliveries", "p", b"x", "image/jpeg")


@pytest.mark.parametrize("key", ["signedURL", "signedUrl"])
def test_blob_store_signed_url_accepts_both_keys(key):
    client, bucket = _storage_client()
    bucket.create_signed_url.return_value = {key: "https://storage.test/signed"}
    assert SupabaseBlobStore(client).create_signed_url("deliveries", "p", 86400) == "https://storage.test/signed"
    bucket.create_signed_url.assert_called_once_with("p", 86400)


def test_blob_store_signed_url_missing_is_upstream_unavailable():
    client, bucket = _storage_client()
    bucket.create_signed_url.return_value = {"error": "not found"}
    with pytest.raises(UpstreamUnavailable):
        SupabaseBlobStore(client).create_signed_url("deliveries", "p", 60)


def test_blob_store_signed_upload_url():
    client, bucket = _storage_client()
    bucket.create_signed_upload_url.return_value = {"signed_url": "https://u", "token": "t", "path": "p"}
    assert SupabaseBlobStore(client).create_signed_upload_url("deliveries", "p") == {
        "path": "p",
        "token": "t",
        "signed_url": "https://u",
    }
