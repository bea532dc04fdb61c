import uuid
from datetime import timedelta

import pytest

from farmestly.db.models.queued_email import QueuedEmail
from farmestly.domain.clock import utcnow
from farmestly.domain.enums import EmailStatus
from farmestly.exceptions import EmailNotFound
from farmestly.mail.store import SqlEmailStore


def _email(**kwargs) -> QueuedEmail:
    defaults = dict(
        id=uuid.uuid4(),
        to_address="farmer@example.com",
        from_address="reports@farmestly.dev",
        subject="Report",
        html="<p>hi</p>",
        text="hi",
        attachments=[],
        status=EmailStatus.PENDING.value,
        attempts=0,
        max_attempts=5,
        priority=0,
        scheduled_for=utcnow() - timedelta(seconds=1),
        extra={},
    )
    defaults.update(kwargs)
    return QueuedEmail(**defaults)


@pytest.fixture()
def store(session_factory):
    return SqlEmailStore(session_factory)


class TestGetPending:
    async def test_orders_by_priority_then_schedule(self, store):
        now = utcnow()
        late = await store.add(_email(subject="late", scheduled_for=now - timedelta(minutes=1)))
        early = await store.add(_email(subject="early", scheduled_for=now - timedelta(minutes=5)))
        urgent = await store.add(_email(subject="urgent", priority=1, scheduled_for=now - timedelta(seconds=1)))

        pending = await store.get_pending(10)
        assert [e.id for e in pending] == [urgent, early, late]

    async def test_excludes_ineligible(self, store):
        eligible = await store.add(_email(status=EmailStatus.FAILED.value, attempts=2))
        await store.add(_email(scheduled_for=utcnow() + timedelta(hours=1)))
        await store.add(_email(status=EmailStatus.SENT.value))
        await store.add(_email(status=EmailStatus.SENDING.value))
        await store.add(_email(status=EmailStatus.FAILED.value, attempts=5, max_attempts=5))

        pending = await store.get_pending(10)
        assert [e.id for e in pending] == [eligible]

    async def test_limit(self, store):
        for _ in range(4):
            await store.add(_email())
        assert len(await store.get_pending(3)) == 3


class TestStatusUpdates:
    async def test_mark_as_sending_counts_attempt(self, store):
        email_id = await store.add(_email())
        await store.mark_as_sending(email_id)

        email = await store.get(email_id)
        assert email.status == EmailStatus.SENDING.value
        assert email.attempts == 1
        assert email.last_attempt_at is not None

    async def test_mark_as_sent(self, store):
        email_id = await store.add(_email(error="old"))
        await store.mark_as_sent(email_id, "<abc@farmestly.dev>")

        email = await store.get(email_id)
        assert email.status == EmailStatus.SENT.value
        assert email.message_id == "<abc@farmestly.dev>"
        assert email.sent_at is not None
        assert email.error is None

    async def test_mark_as_failed_reschedules(self, store):
        email_id = await store.add(_email())
        before = utcnow()
        await store.mark_as_failed(email_id, "timeout", 120)

        email = await store.get(email_id)
        assert email.status == EmailStatus.FAILED.value
        assert email.error == "timeout"
        assert email.scheduled_for >= before + timedelta(seconds=119)

    async def test_mark_as_permanently_failed(self, store):
        email_id = await store.add(_email())
        await store.mark_as_permanently_failed(email_id, "User unknown")

        email = await store.get(email_id)
        assert email.status == EmailStatus.PERMANENTLY_FAILED.value
        assert email.failed_at is not None


class TestRetry:
    async def test_retry_failed_moves_only_elapsed(self, store):
        ready = await store.add(_email(status=EmailStatus.FAILED.value, attempts=1))
        waiting = await store.add(
            _email(status=EmailStatus.FAILED.value, attempts=1, scheduled_for=utcnow() + timedelta(minutes=10))
        )

        assert await store.retry_failed() == 1
        assert (await store.get(ready)).status == EmailStatus.PENDING.value
        assert (await store.get(waiting)).status == EmailStatus.FAILED.value

    async def test_retry_email_resets(self, store):
        email_id = await store.add(
            _email(status=EmailStatus.PERMANENTLY_FAILED.value, attempts=5, error="User unknown")
        )
        await store.retry_email(email_id)

        email = await store.get(email_id)
        assert email.status == EmailStatus.PENDING.value
        assert email.attempts == 0
        assert email.error is None

    async def test_retry_unknown_raises(self, store):
        with pytest.raises(EmailNotFound):
            await store.retry_email(uuid.uuid4())


class TestCleanupAndStats:
    async def test_cleanup_deletes_old_sent_only(self, store):
        now = utcnow()
        old_sent = await store.add(_email(status=EmailStatus.SENT.value, sent_at=now - timedelta(days=31)))
        recent_sent = await store.add(_email(status=EmailStatus.SENT.value, sent_at=now - timedelta(days=2)))
        old_failed = await store.add(_email(status=EmailStatus.PERMANENTLY_FAILED.value, sent_at=None))

        assert await store.cleanup(30) == 1
        assert await store.get(old_sent) is None
        assert await store.get(recent_sent) is not None
        assert await store.get(old_failed) is not None
        assert await store.cleanup(30) == 0

    async def test_stats_by_status(self, store):
        await store.add(_email())
        await store.add(_email())
        await store.add(_email(status=EmailStatus.SENT.value))

        stats = await store.get_stats()
        assert stats["total"] == 3
        assert stats["by_status"]["pending"]["count"] == 2
        assert stats["by_status"]["sent"]["count"] == 1
        assert stats["by_status"]["pending"]["oldest"] is not None
