"""Tests for notifiers."""

import smtplib
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from stagerun.src.errors import NotificationFailure
from stagerun.src.models.run import RunResult, RunStatus
from stagerun.src.models.stage import StageResult, StageStatus, Target
from stagerun.src.services import notifier as notifier_module
from stagerun.src.services.notifier import (
    CompositeNotifier,
    EmailNotifier,
    LogNotifier,
    WebhookNotifier,
    build_notifier,
    render_message,
)

def make_result(status=RunStatus.SUCCEEDED, stderr=""):
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    stages = [
        StageResult(ordinal=1, name="clone", target=Target.LOCAL, status=StageStatus.SUCCEEDED),
        StageResult(
            ordinal=2,
            name="test",
            target=Target.LOCAL,
            status=StageStatus.FAILED if status == RunStatus.FAILED else StageStatus.SUCCEEDED,
            stderr=stderr,
        ),
    ]
    failed = status == RunStatus.FAILED
    return RunResult(
        run_id="abc123",
        pipeline="webapp",
        status=status,
        stages=stages,
        executed=["clone", "test"],
        failing_stage="test" if failed else None,
        failing_ordinal=2 if failed else None,
        error_kind="CommandFailure" if failed else None,
        failure_reason="Command exited with status 1" if failed else None,
        started_at=start,
        finished_at=start + timedelta(seconds=42),
    )

def test_success_template():
    message = render_message(make_result(), ["dev@example.com"])
    assert message.subject == "[stagerun] webapp #abc123 succeeded"
    assert "clone, test" in message.body
    assert "42.0s" in message.body
    assert message.recipients == ["dev@example.com"]

def test_failure_template_has_stage_and_stderr_tail():
    stderr = "\n".join(f"line {i}" for i in range(50))
    message = render_message(make_result(RunStatus.FAILED, stderr=stderr))
    assert message.subject == "[stagerun] webapp #abc123 failed at test"
    assert "Stage: test" in message.body
    assert "CommandFailure" in message.body
    assert "line 49" in message.body
    assert "line 29" not in message.body

def test_stderr_tail_lines():
    result = make_result(RunStatus.FAILED, stderr="a\nb\nc\n")
    assert result.stderr_tail(2) == "b\nc"
    assert make_result().stderr_tail() == ""

class FakeSMTP:
    sent = []
    fail = False

    def __init__(self, host, port, timeout=None):
        if FakeSMTP.fail:
            raise ConnectionRefusedError("no smtp")
        self.host = host

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def send_message(self, message):
        FakeSMTP.sent.append(message)

@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.sent = []
    FakeSMTP.fail = False
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    return FakeSMTP

def test_email_notifier_sends(fake_smtp):
    EmailNotifier(["dev@example.com"], sender="ci@example.com").notify(make_result(RunStatus.FAILED))

    email = fake_smtp.sent[0]
    assert email["To"] == "dev@example.com"
    assert email["From"] == "ci@example.com"
    assert "failed at test" in email["Subject"]

def test_email_notifier_without_recipients_is_noop(fake_smtp):
    EmailNotifier([]).notify(make_result())
    assert fake_smtp.sent == []

def test_email_delivery_failure(fake_smtp):
    fake_smtp.fail = True
    with pytest.raises(NotificationFailure, match="Failed to send email"):
        EmailNotifier(["dev@example.com"]).notify(make_result())

def test_webhook_notifier_posts_json(monkeypatch):
    posted = {}

    def fake_post(url, json=None, timeout=None):
        posted.update(url=url, json=json)
        return httpx.Response(200, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    WebhookNotifier("https://hooks.example.com/ci").notify(make_result())

    assert posted["url"] == "https://hooks.example.com/ci"
    assert posted["json"]["run"]["status"] == "succeeded"
    assert "stages" not in posted["json"]["run"]

def test_webhook_notifier_http_error(monkeypatch):
    def fake_post(url, json=None, timeout=None):
        return httpx.Response(500, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    with pytest.raises(NotificationFailure, match="Webhook delivery"):
        WebhookNotifier("https://hooks.example.com/ci").notify(make_result())

def test_composite_notifier_tries_every_notifier():
    delivered = []

    class Broken:
        def notify(self, result):
            raise NotificationFailure("broken")

    class Working:
        def notify(self, result):
            delivered.append(result.run_id)

    with pytest.raises(NotificationFailure, match="broken"):
        CompositeNotifier([Broken(), Working()]).notify(make_result())
    assert delivered == ["abc123"]

def test_log_notifier(caplog):
    with caplog.at_level("ERROR", logger=notifier_module.__name__):
        LogNotifier().notify(make_result(RunStatus.FAILED))
    assert "failed at test" in caplog.text

def test_build_notifier():
    notifier = build_notifier(["dev@example.com"], "https://hooks.example.com/ci")
    kinds = [type(n) for n in notifier.notifiers]
    assert kinds == [LogNotifier, EmailNotifier, WebhookNotifier]
