"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - A missing locker_api_key is allowed at startup; every signed request is then rejected

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Signature encoding per message type: the locker signs list and fetch requests
      differently and that partner contract is not ours to change
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from certbridge.core.domain_types import SignatureEncoding


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://certbridge:certbridge@db:5432/certbridge"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms provide postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Object store (S3 or any S3-compatible endpoint)
    s3_bucket_name: str = "certbridge-certificates"
    aws_region: str = "ap-south-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    s3_endpoint_url: str | None = None
    s3_key_prefix: str = "certificates/"
    object_store_max_retries: int = 3
    object_store_base_delay_ms: int = 200
    object_store_max_delay_ms: int = 5_000

    # Locker pull protocol
    locker_api_key: str | None = None
    locker_signature_header: str = "x-digilocker-hmac"
    pull_uri_signature_encoding: SignatureEncoding = SignatureEncoding.BASE64
    pull_doc_signature_encoding: SignatureEncoding = SignatureEncoding.HEX
    reference_prefix: str = "locker://certbridge/"
    document_type: str = "CERTIFICATE"
    program_label: str = "Conference Attendance Certificate"

    # Certificate rendering
    issuer_name: str = "Certificate Issuing Office"
    certificate_program_noun: str = "Conference"
    certificate_footer: str = (
        "This certificate is electronically generated and available in DigiLocker."
    )

    # Partner issuance API (push); disabled unless a partner id is set
    partner_api_base_url: str = "https://api.digitallocker.gov.in"
    partner_id: str | None = None
    partner_api_key: str | None = None
    partner_secret: str | None = None
    partner_issuer_id: str | None = None
    partner_certificate_type: str = "CONFERENCE_ATTENDANCE_CERTIFICATE"
    partner_max_retries: int = 3
    partner_timeout_seconds: int = 30
    partner_base_delay_ms: int = 1000
    partner_max_delay_ms: int = 30_000

    # Issuance
    issuance_batch_limit: int = 500

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def partner_enabled(self) -> bool:
        return bool(self.partner_id and self.partner_secret)


@lru_cache
def get_settings() -> Settings:
    return Settings()
