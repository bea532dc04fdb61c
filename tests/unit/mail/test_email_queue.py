import asyncio
import base64
import uuid
from datetime import timedelta

import aiosmtplib
import pytest

from farmestly.domain.clock import utcnow
from farmestly.domain.enums import EmailStatus
from farmestly.exceptions import EmailQueueNotReady, EmailValidationError
from farmestly.mail.queue import EmailQueue, strip_html
from farmestly.mail.store import SqlEmailStore


class FakeTransport:
    def __init__(self, errors=None, delay=0.0):
        self.errors = list(errors or [])
        self.delay = delay
        self.sent = []
        self.verified = False
        self.closed = False
        self.in_flight = 0
        self.peak = 0

    async def verify(self):
        self.verified = True

    async def send(self, message):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.errors:
                raise self.errors.pop(0)
            self.sent.append(message)
            return message["Message-ID"]
        finally:
            self.in_flight -= 1

    async def close(self):
        self.closed = True


@pytest.fixture()
def store(session_factory):
    return SqlEmailStore(session_factory)


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
async def queue(store, transport):
    q = EmailQueue(store, transport, default_from="reports@farmestly.dev", send_interval=3600, retry_interval=3600)
    await q.start()
    await q.join()
    yield q
    await q.shutdown()


class TestStripHtml:
    def test_drops_tags_and_style(self):
        html = "<html><head><style>p{color:red}</style></head><body><p>Hello &amp; welcome</p></body></html>"
        assert strip_html(html) == "Hello & welcome"


class TestEnqueue:
    async def test_before_start_raises(self, store, transport):
        q = EmailQueue(store, transport)
        with pytest.raises(EmailQueueNotReady):
            await q.enqueue("a@b.com", "s", "<p>x</p>")

    async def test_start_verifies_transport(self, queue, transport):
        assert transport.verified
        assert queue.is_running

    @pytest.mark.parametrize(
        "to,subject,html",
        [("", "s", "<p>x</p>"), ("a@b.com", "", "<p>x</p>"), ("a@b.com", "s", ""), ("not-an-address", "s", "<p>x</p>")],
    )
    async def test_validation(self, queue, to, subject, html):
        with pytest.raises(EmailValidationError):
            await queue.enqueue(to, subject, html)

    async def test_stores_attachment_and_text(self, queue, store):
        email_id = await queue.enqueue(
            "farmer@example.com",
            "Report",
            "<p>Your <b>report</b></p>",
            attachments=[{"filename": "r.pdf", "content": b"%PDF-1.4"}],
        )
        email = await store.get(uuid.UUID(email_id))
        assert email.status == EmailStatus.PENDING.value
        assert email.from_address == "reports@farmestly.dev"
        assert email.text == "Your report"
        assert email.attachments == [
            {"filename": "r.pdf", "content": base64.b64encode(b"%PDF-1.4").decode(), "content_type": "application/pdf"}
        ]

    async def test_normal_priority_waits_for_sweep(self, queue, store, transport):
        email_id = await queue.enqueue("farmer@example.com", "Report", "<p>x</p>")
        await queue.join()
        assert transport.sent == []
        assert (await store.get(uuid.UUID(email_id))).status == EmailStatus.PENDING.value

        assert await queue.process_queue() == 1
        assert (await store.get(uuid.UUID(email_id))).status == EmailStatus.SENT.value

    async def test_priority_sends_immediately(self, queue, store, transport):
        email_id = await queue.enqueue("farmer@example.com", "Report", "<p>x</p>", priority=1)
        await queue.join()

        email = await store.get(uuid.UUID(email_id))
        assert email.status == EmailStatus.SENT.value
        assert email.message_id == transport.sent[0]["Message-ID"]
        assert email.attempts == 1


class TestDelivery:
    async def test_transient_failure_backs_off(self, queue, store, transport):
        transport.errors = [aiosmtplib.SMTPServerDisconnected("gone"), aiosmtplib.SMTPServerDisconnected("gone")]
        email_id = uuid.UUID(await queue.enqueue("farmer@example.com", "Report", "<p>x</p>"))

        before = utcnow()
        await queue.process_queue()
        email = await store.get(email_id)
        assert email.status == EmailStatus.FAILED.value
        assert email.attempts == 1
        assert before + timedelta(seconds=59) <= email.scheduled_for <= utcnow() + timedelta(seconds=61)

        # not due yet
        assert await queue.process_queue() == 0

        await store._update(email_id, scheduled_for=utcnow())
        before = utcnow()
        await queue.process_queue()
        email = await store.get(email_id)
        assert email.attempts == 2
        assert email.scheduled_for >= before + timedelta(seconds=119)

    async def test_permanent_failure(self, queue, store, transport):
        transport.errors = [aiosmtplib.SMTPRecipientRefused(550, "User unknown", "farmer@example.com")]
        email_id = uuid.UUID(await queue.enqueue("farmer@example.com", "Report", "<p>x</p>"))

        await queue.process_queue()
        email = await store.get(email_id)
        assert email.status == EmailStatus.PERMANENTLY_FAILED.value
        assert email.failed_at is not None
        assert email.attempts == 1

    async def test_attempts_exhausted(self, queue, store, transport):
        transport.errors = [aiosmtplib.SMTPServerDisconnected("gone")]
        email_id = uuid.UUID(await queue.enqueue("farmer@example.com", "Report", "<p>x</p>", max_attempts=1))

        await queue.process_queue()
        assert (await store.get(email_id)).status == EmailStatus.PERMANENTLY_FAILED.value

    async def test_single_sender(self, store, session_factory):
        transport = FakeTransport(delay=0.01)
        q = EmailQueue(store, transport, send_interval=3600, retry_interval=3600)
        await q.start()
        await q.join()
        try:
            for i in range(3):
                await q.enqueue(f"farmer{i}@example.com", "Report", "<p>x</p>")
            counts = await asyncio.gather(q.process_queue(), q.process_queue())
        finally:
            await q.shutdown()

        assert sorted(counts) == [0, 3]
        assert transport.peak == 1
        assert len({m["To"] for m in transport.sent}) == 3
        assert len(transport.sent) == 3

    async def test_retry_email_resends(self, queue, store, transport):
        transport.errors = [aiosmtplib.SMTPRecipientRefused(550, "User unknown", "farmer@example.com")]
        email_id = await queue.enqueue("farmer@example.com", "Report", "<p>x</p>")
        await queue.process_queue()

        await queue.retry_email(email_id)
        await queue.join()
        assert (await store.get(uuid.UUID(email_id))).status == EmailStatus.SENT.value


class TestLifecycle:
    async def test_shutdown_closes_transport(self, store, transport):
        q = EmailQueue(store, transport, send_interval=3600, retry_interval=3600)
        await q.start()
        await q.shutdown()

        assert transport.closed
        assert not q.is_running
        with pytest.raises(EmailQueueNotReady):
            await q.enqueue("a@b.com", "s", "<p>x</p>")

    async def test_stats(self, store, transport):
        q = EmailQueue(store, transport, send_interval=3600, retry_interval=3600)
        assert await q.get_stats() == {"initialized": False}

        await q.start()
        await q.join()
        try:
            await q.enqueue("a@b.com", "s", "<p>x</p>")
            stats = await q.get_stats()
        finally:
            await q.shutdown()
        assert stats["initialized"] is True
        assert stats["processing"] is False
        assert stats["by_status"]["pending"]["count"] == 1
