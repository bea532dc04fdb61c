"""Celery maintenance tasks for report files, report jobs and the e-mail queue."""

import asyncio
import logging

from farmestly.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="cleanup_expired_reports")
def cleanup_expired_reports_task(self) -> dict:
    """Delete expired report PDFs and report jobs older than the retention window.

    Bridges to async code via asyncio.run(); each invocation builds its own
    engine so nothing is shared with the API process.
    """
    return asyncio.run(_cleanup_expired_reports_async())


async def _cleanup_expired_reports_async() -> dict:
    from datetime import timedelta

    from farmestly.config import settings
    from farmestly.db.session import build_engine, build_session_factory
    from farmestly.report.jobs import cleanup_expired_jobs
    from farmestly.report.storage import FileSystemStorage

    engine = build_engine(settings.database_url, echo=False)
    session_factory = build_session_factory(engine)
    storage = FileSystemStorage(
        base_path=settings.report_storage_path,
        secret=settings.report_url_secret,
        expiry_minutes=settings.report_expiry_minutes,
    )
    try:
        counts = await cleanup_expired_jobs(
            session_factory,
            storage,
            retention=timedelta(hours=settings.report_job_retention_hours),
        )
    finally:
        await engine.dispose()
    logger.info("Report cleanup: %(deleted_files)d file(s), %(deleted_records)d job(s)", counts)
    return {"status": "ok", **counts}


@celery_app.task(bind=True, name="cleanup_email_queue")
def cleanup_email_queue_task(self) -> dict:
    """Delete sent e-mails older than the retention period."""
    return asyncio.run(_cleanup_email_queue_async())


async def _cleanup_email_queue_async() -> dict:
    from farmestly.config import settings
    from farmestly.db.session import build_engine, build_session_factory
    from farmestly.mail.store import SqlEmailStore

    engine = build_engine(settings.database_url, echo=False)
    try:
        store = SqlEmailStore(build_session_factory(engine))
        deleted = await store.cleanup(settings.email_retention_days)
    finally:
        await engine.dispose()
    logger.info("E-mail queue cleanup removed %d sent message(s)", deleted)
    return {"status": "ok", "deleted": deleted}
