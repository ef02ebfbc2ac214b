"""
Post-run notifications.

Notifiers raise NotificationFailure when delivery fails; the runner logs
it and keeps the run outcome unchanged.
"""

import logging
import smtplib
from email.message import EmailMessage
from typing import List, Optional, Protocol

import httpx

from stagerun.src.config import get_settings
from stagerun.src.errors import NotificationFailure
from stagerun.src.models.run import RunResult

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20

SUCCESS_SUBJECT = "[stagerun] {pipeline} #{run_id} succeeded"
FAILURE_SUBJECT = "[stagerun] {pipeline} #{run_id} failed at {stage}"

SUCCESS_BODY = """Pipeline {pipeline} run {run_id} succeeded.

Stages: {executed}
Duration: {duration:.1f}s
"""

FAILURE_BODY = """Pipeline {pipeline} run {run_id} failed.

Stage: {stage}
Error: {error_kind}: {reason}
Completed stages: {executed}

Last {tail_lines} lines of stderr:
{stderr_tail}
"""

class Message:
    def __init__(self, subject: str, body: str, recipients: Optional[List[str]] = None):
        self.subject = subject
        self.body = body
        self.recipients = list(recipients or [])

def render_message(result: RunResult, recipients: Optional[List[str]] = None) -> Message:
    """Pick the success or failure template for a run."""
    duration = (result.finished_at - result.started_at).total_seconds()
    values = {
        "pipeline": result.pipeline,
        "run_id": result.run_id,
        "executed": ", ".join(result.executed) or "none",
        "duration": duration,
    }

    if result.succeeded:
        return Message(
            SUCCESS_SUBJECT.format(**values),
            SUCCESS_BODY.format(**values),
            recipients,
        )

    stage = result.failing_stage or "(before first stage)"
    values.update(
        stage=stage,
        error_kind=result.error_kind or "Unknown",
        reason=result.failure_reason or "",
        tail_lines=STDERR_TAIL_LINES,
        stderr_tail=result.stderr_tail(STDERR_TAIL_LINES) or "(empty)",
    )
    return Message(
        FAILURE_SUBJECT.format(**values),
        FAILURE_BODY.format(**values),
        recipients,
    )

class Notifier(Protocol):
    def notify(self, result: RunResult) -> None: ...

class LogNotifier:
    """Writes the rendered message to the log."""

    def notify(self, result: RunResult) -> None:
        message = render_message(result)
        level = logging.INFO if result.succeeded else logging.ERROR
        logger.log(level, f"{message.subject}\n{message.body}")

class EmailNotifier:
    def __init__(
        self,
        recipients: List[str],
        sender: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ):
        settings = get_settings()
        self.recipients = recipients
        self.sender = sender or settings.notify_sender
        self.host = host or settings.smtp_host
        self.port = port or settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.starttls = settings.smtp_starttls

    def build_email(self, result: RunResult) -> EmailMessage:
        message = render_message(result, self.recipients)
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = ", ".join(message.recipients)
        email["Subject"] = message.subject
        email.set_content(message.body)
        return email

    def notify(self, result: RunResult) -> None:
        if not self.recipients:
            logger.info("No notification recipients configured, skipping email")
            return

        email = self.build_email(result)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(email)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailure(f"Failed to send email via {self.host}:{self.port}: {e}")

        logger.info(f"Sent notification to {', '.join(self.recipients)}")

class WebhookNotifier:
    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def notify(self, result: RunResult) -> None:
        message = render_message(result)
        payload = {
            "subject": message.subject,
            "body": message.body,
            "run": result.model_dump(mode="json", exclude={"stages"}),
        }
        try:
            response = httpx.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationFailure(f"Webhook delivery to {self.url} failed: {e}")

        logger.info(f"Posted notification to {self.url}")

class CompositeNotifier:
    """Delivers to every notifier; failures are collected and raised together."""

    def __init__(self, notifiers: List[Notifier]):
        self.notifiers = notifiers

    def notify(self, result: RunResult) -> None:
        errors = []
        for notifier in self.notifiers:
            try:
                notifier.notify(result)
            except NotificationFailure as e:
                errors.append(str(e))
        if errors:
            raise NotificationFailure("; ".join(errors))

def build_notifier(recipients: Optional[List[str]] = None, webhook_url: str = "") -> Notifier:
    """Log notifier plus email/webhook delivery where configured."""
    settings = get_settings()
    notifiers: List[Notifier] = [LogNotifier()]

    if recipients:
        notifiers.append(EmailNotifier(recipients))

    url = webhook_url or settings.notify_webhook_url
    if url:
        notifiers.append(WebhookNotifier(url))

    return CompositeNotifier(notifiers)
