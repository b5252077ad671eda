from typing import Optional

from pydantic import BaseModel, PrivateAttr
from pydantic_settings import BaseSettings


class MailConfig(BaseModel):
    """SMTP settings handed to the notification dispatcher at construction."""

    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    sender: Optional[str] = None
    debug: bool = False
    timeout: float = 10.0

    @property
    def use_ssl(self) -> bool:
        return self.port == 465


class Settings(BaseSettings):
    app_name: str = "Loan Application Intake API"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3005

    database_url: str = "sqlite+aiosqlite:///./loan_intake.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    upload_dir: str = "./uploads"
    upload_url_prefix: str = "/uploads"

    application_number_prefix: str = "APP"
    application_number_width: int = 6
    default_rejection_reason: str = "Application did not meet eligibility criteria"
    # Report a failed confirmation email to the caller after the application is saved
    strict_submission_notifications: bool = True
    # Repeat approve/reject on an already decided application becomes a no-op
    guard_terminal_transitions: bool = False

    email_host: Optional[str] = None
    email_port: Optional[int] = None
    email_user: Optional[str] = None
    email_pass: Optional[str] = None
    email_from: Optional[str] = None
    smtp_debug: bool = False
    smtp_timeout: float = 10.0

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    _is_sqlite: bool = PrivateAttr(default=False)
    _is_postgresql: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: object) -> None:
        _scheme = self.database_url.split(":")[0].lower()
        object.__setattr__(self, "_is_sqlite", "sqlite" in _scheme)
        object.__setattr__(self, "_is_postgresql", "postgresql" in _scheme)

    @property
    def is_sqlite(self) -> bool:
        return self._is_sqlite

    @property
    def is_postgresql(self) -> bool:
        return self._is_postgresql

    def mail_config(self) -> MailConfig:
        return MailConfig(
            host=self.email_host,
            port=self.email_port,
            user=self.email_user,
            password=self.email_pass,
            sender=self.email_from or self.email_user,
            debug=self.smtp_debug,
            timeout=self.smtp_timeout,
        )


settings = Settings()
