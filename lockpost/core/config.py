"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated origins. Empty = default list in lockpost.main.
    cors_origins: str = ""
    # Public URL buyers use to reach /resources/{id}; goes into replies and x402 requirements.
    public_base_url: str = "http://localhost:4021"

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # CONTENT ENCRYPTION
    # ===========================================
    encryption_key: str  # Required, 64 hex chars (AES-256)
    watermark_secret: str  # Required, HMAC key for buyer watermarks
    proof_token_bytes: int = 12

    # ===========================================
    # PRICING
    # ===========================================
    default_price_minor_units: int = 20  # $0.20
    default_currency: str = "USDC"
    default_chain: str = "solana"

    # ===========================================
    # X402 PAYMENTS
    # ===========================================
    facilitator_url: str = "https://facilitator.payai.network"
    payment_network: str = "solana-devnet"  # solana, solana-devnet
    treasury_wallet_address: str = ""
    # Devnet: 4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU
    # Mainnet: EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v
    usdc_mint_address: str = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
    usdc_decimals: int = 6
    payment_max_timeout_seconds: int = 60
    facilitator_timeout: float = 30.0

    # ===========================================
    # X (TWITTER) API
    # ===========================================
    x_api_base: str = "https://api.twitter.com"
    x_user_access_token: str = ""  # OAuth2 user-context token of the bot account
    x_bot_user_id: str = ""
    x_bot_username: str = "sublessnetwork"
    x_client_id: str = ""
    x_client_secret: str = ""
    x_redirect_uri: str = "http://localhost:4021/api/auth/callback"
    x_request_timeout: float = 30.0
    frontend_url: str = "http://localhost:3000"

    # ===========================================
    # QUEUES & WORKERS
    # ===========================================
    ingestion_concurrency: int = 5
    ingestion_rate_limit: str = "10/s"
    ingestion_max_attempts: int = 3
    ingestion_backoff_seconds: float = 2.0

    verification_concurrency: int = 3
    verification_rate_limit: str = "5/s"
    verification_max_attempts: int = 3
    verification_backoff_seconds: float = 2.0

    # Replies are strictly one at a time (platform rate limits)
    reply_concurrency: int = 1
    reply_rate_limit: str = "10/m"
    reply_max_attempts: int = 3
    dm_max_attempts: int = 5
    reply_backoff_seconds: float = 3.0

    retry_backoff_max_seconds: float = 600.0
    job_stall_seconds: int = 300
    mention_poll_interval_seconds: int = 30

    # ===========================================
    # STATE MANAGEMENT
    # ===========================================
    dedup_ttl_days: int = 7
    oauth_session_ttl: int = 300  # 5 minutes
    session_secret: str  # Required, no default

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, v: str) -> str:
        """AES-256 needs exactly 32 bytes, given as hex."""
        v = v.strip()
        try:
            raw = bytes.fromhex(v)
        except ValueError:
            raise ValueError("encryption_key must be hex-encoded")
        if len(raw) != 32:
            raise ValueError("encryption_key must be 32 bytes (64 hex chars)")
        return v

    @field_validator("session_secret")
    @classmethod
    def validate_session_secret(cls, v: str) -> str:
        """Ensure session secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("session_secret must be at least 16 characters")
        if v in ("changeme", "secret", "password", "admin"):
            raise ValueError("session_secret is too weak, please change it")
        return v

    @property
    def encryption_key_bytes(self) -> bytes:
        return bytes.fromhex(self.encryption_key)

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
