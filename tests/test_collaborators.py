from __future__ import annotations

import io
from types import SimpleNamespace

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from ahaar.core.errors import ValidationError
from ahaar.services.assets import LocalAssetStore, read_image_upload, replace_asset
from ahaar.services.mail import (
    ConsoleMailSender,
    MailDeliveryError,
    SendGridMailSender,
    build_verification_email,
    deliver,
)
from tests.fixtures_data import FakeAssetStore


def _upload(data: bytes, filename: str = "logo.png", content_type: str = "image/png") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


def test_local_store_writes_and_deletes_under_its_root(tmp_path):
    store = LocalAssetStore(root=tmp_path)

    uploaded = store.upload(b"img", folder="brands/1", filename="logo.PNG")

    assert uploaded["public_id"].startswith("brands/1/")
    assert uploaded["public_id"].endswith(".png")
    assert uploaded["url"] == f"/uploads/{uploaded['public_id']}"
    assert (tmp_path / uploaded["public_id"]).read_bytes() == b"img"
    assert store.delete(uploaded["public_id"]) == {"result": "ok"}
    assert store.delete(uploaded["public_id"]) == {"result": "not found"}
    assert store.delete("../outside.txt") == {"result": "not found"}


def test_replace_asset_deletes_before_uploading():
    store = FakeAssetStore()

    uploaded = replace_asset(store, old_public_id="old", data=b"new", folder="users/1", filename="a.png")

    assert store.calls == [("delete", "old"), ("upload", uploaded["public_id"])]


def test_image_upload_checks():
    assert read_image_upload(_upload(b"png-bytes"), "Avatar") == b"png-bytes"
    with pytest.raises(ValidationError, match="Unsupported file type"):
        read_image_upload(_upload(b"text", "a.txt", "text/plain"), "Avatar")
    with pytest.raises(ValidationError, match="Avatar is required"):
        read_image_upload(None, "Avatar")


def test_deliver_is_best_effort():
    class Broken:
        def send(self, message):
            raise OSError("connection refused")

    message = build_verification_email(name="Nadia", email="n@example.com", link="http://x/verify/t")
    console = ConsoleMailSender()

    assert deliver(console, message) is True
    assert console.outbox == [message]
    assert deliver(Broken(), message) is False


def test_verification_email_escapes_the_name():
    message = build_verification_email(name="<b>Nadia</b>", email="n@example.com", link="http://x/verify/t")

    assert "<b>Nadia</b>" not in message.html
    assert "activate your account" in message.html


class _RecordingSendGrid:
    def __init__(self, status_code: int = 202) -> None:
        self.status_code = status_code
        self.sent = []

    def send(self, mail):
        self.sent.append(mail)
        return SimpleNamespace(status_code=self.status_code, body=b"")


def test_sendgrid_sender_posts_the_html_message():
    client = _RecordingSendGrid()
    sender = SendGridMailSender(sender="no-reply@ahaar.test", reply_to="help@ahaar.test", client=client)
    message = build_verification_email(name="Nadia", email="n@example.com", link="http://x/verify/t")

    assert deliver(sender, message) is True

    body = client.sent[0].get()
    assert body["from"]["email"] == "no-reply@ahaar.test"
    assert body["reply_to"]["email"] == "help@ahaar.test"
    assert body["personalizations"][0]["to"][0]["email"] == "n@example.com"
    assert body["subject"] == "Account Creation Confirmation"
    assert body["content"][0]["type"] == "text/html"


def test_sendgrid_rejection_is_a_delivery_error():
    sender = SendGridMailSender(sender="no-reply@ahaar.test", client=_RecordingSendGrid(status_code=401))
    message = build_verification_email(name="Nadia", email="n@example.com", link="http://x/verify/t")

    with pytest.raises(MailDeliveryError, match="status=401"):
        sender.send(message)
    assert deliver(sender, message) is False


def test_sendgrid_sender_requires_an_api_key():
    with pytest.raises(RuntimeError, match="SENDGRID_API_KEY"):
        SendGridMailSender(api_key="")
