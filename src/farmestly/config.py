from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "farmestly"
    redis_url: str = "redis://localhost:6379/0"
    debug: bool = False

    # Signed report storage
    report_storage_path: str = "/var/farmestly/reports"
    report_url_secret: str = "default-secret-change-in-production"
    report_expiry_minutes: int = 30
    report_download_path: str = "/report/download"
    report_accel_redirect_prefix: str = "/_internal_reports/"  # empty -> stream from app
    report_public_base_url: str = ""
    report_cleanup_interval_minutes: int = 5
    report_job_retention_hours: int = 24

    # Report limits
    max_records_total: int = 10000
    max_email_attachment_records: int = 500

    # Render pool
    render_concurrency: int = 0  # 0 -> cpu_count - render_reserved_cpus
    render_reserved_cpus: int = 2
    render_max_tasks_per_browser: int = 100
    render_max_attempts: int = 3
    render_backoff_seconds: float = 2.0
    render_timeout_seconds: float = 60.0

    # SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""
    smtp_secure: bool = False
    smtp_require_tls: bool = False

    # E-mail queue
    email_queue_interval_seconds: float = 30.0
    email_retry_interval_seconds: float = 300.0
    email_batch_size: int = 10
    email_max_attempts: int = 5
    email_retention_days: int = 30

    @property
    def database_url(self) -> str:
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def default_from_address(self) -> str:
        return self.smtp_from or self.smtp_user


settings = Settings()
