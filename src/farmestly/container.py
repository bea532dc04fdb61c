from dependency_injector import containers, providers

from farmestly.config import Settings
from farmestly.db.session import build_engine, build_session_factory
from farmestly.mail.queue import EmailQueue
from farmestly.mail.store import SqlEmailStore
from farmestly.mail.transport import SmtpTransport
from farmestly.report.jobs import ReportJobManager, ReportLimits
from farmestly.report.render_pool import PlaywrightLauncher, RenderPool
from farmestly.report.storage import FileSystemStorage


class Container(containers.DeclarativeContainer):
    wiring_config = containers.WiringConfiguration(modules=["farmestly.api.deps"])

    settings = providers.Singleton(Settings)

    engine = providers.Singleton(
        build_engine,
        database_url=settings.provided.database_url,
        echo=settings.provided.debug,
    )

    session_factory = providers.Singleton(
        build_session_factory,
        engine=engine,
    )

    report_storage = providers.Singleton(
        FileSystemStorage,
        base_path=settings.provided.report_storage_path,
        secret=settings.provided.report_url_secret,
        expiry_minutes=settings.provided.report_expiry_minutes,
        download_path=settings.provided.report_download_path,
        accel_redirect_prefix=settings.provided.report_accel_redirect_prefix,
        public_base_url=settings.provided.report_public_base_url,
    )

    render_launcher = providers.Singleton(PlaywrightLauncher)

    render_pool = providers.Singleton(
        RenderPool,
        launcher=render_launcher,
        concurrency=settings.provided.render_concurrency,
        reserved_cpus=settings.provided.render_reserved_cpus,
        max_tasks_per_browser=settings.provided.render_max_tasks_per_browser,
        max_attempts=settings.provided.render_max_attempts,
        backoff_seconds=settings.provided.render_backoff_seconds,
        timeout_seconds=settings.provided.render_timeout_seconds,
    )

    smtp_transport = providers.Singleton(
        SmtpTransport,
        host=settings.provided.smtp_host,
        port=settings.provided.smtp_port,
        username=settings.provided.smtp_user,
        password=settings.provided.smtp_pass,
        use_tls=settings.provided.smtp_secure,
        require_tls=settings.provided.smtp_require_tls,
    )

    email_store = providers.Singleton(SqlEmailStore, session_factory=session_factory)

    email_queue = providers.Singleton(
        EmailQueue,
        store=email_store,
        transport=smtp_transport,
        default_from=settings.provided.default_from_address,
        send_interval=settings.provided.email_queue_interval_seconds,
        retry_interval=settings.provided.email_retry_interval_seconds,
        batch_size=settings.provided.email_batch_size,
        default_max_attempts=settings.provided.email_max_attempts,
    )

    report_limits = providers.Singleton(
        ReportLimits,
        max_records_total=settings.provided.max_records_total,
        max_email_attachment_records=settings.provided.max_email_attachment_records,
        job_retention_hours=settings.provided.report_job_retention_hours,
    )

    report_job_manager = providers.Singleton(
        ReportJobManager,
        session_factory=session_factory,
        storage=report_storage,
        render_pool=render_pool,
        email_queue=email_queue,
        limits=report_limits,
    )
