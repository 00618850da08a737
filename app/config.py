"""Application configuration."""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_ADMIN_SECRET = "test-admin-secret-for-development-only"

DEFAULT_CORS_ORIGINS = ",".join(
    [
        "https://austinfoodclub.com",
        "https://www.austinfoodclub.com",
        "https://admin.austinfoodclub.com",
        "http://localhost:3000",
        "http://localhost:8080",
        "http://localhost:8081",
        "http://localhost:8082",
    ]
)


def is_placeholder(value: str | None) -> bool:
    """Detect values copied verbatim from .env.example."""
    return bool(value) and value.startswith("your_") and value.endswith("_here")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Austin Food Club API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_prefix: str = Field(default="/api", alias="API_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # Shared state store (rate-limit counters, caches, verification codes)
    cache_backend: str = Field(default="redis", alias="CACHE_BACKEND")
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")

    # JWT (session tokens issued after phone verification)
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Supabase
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_jwt_secret: str = Field(default="", alias="SUPABASE_JWT_SECRET")
    supabase_jwt_audience: str = Field(default="authenticated", alias="SUPABASE_JWT_AUDIENCE")

    # Yelp Fusion
    yelp_api_key: str = Field(default="", alias="YELP_API_KEY")
    yelp_base_url: str = Field(default="https://api.yelp.com/v3", alias="YELP_BASE_URL")
    yelp_timeout_seconds: float = Field(default=10.0, alias="YELP_TIMEOUT_SECONDS")
    yelp_default_location: str = Field(default="Austin, TX", alias="YELP_DEFAULT_LOCATION")
    yelp_search_radius_meters: int = Field(default=24140, alias="YELP_SEARCH_RADIUS_METERS")
    yelp_limit_per_minute: int = Field(default=10, alias="YELP_LIMIT_PER_MINUTE")
    yelp_limit_per_hour: int = Field(default=500, alias="YELP_LIMIT_PER_HOUR")
    yelp_limit_per_day: int = Field(default=5000, alias="YELP_LIMIT_PER_DAY")
    yelp_recheck_interval_seconds: int = Field(default=300, alias="YELP_RECHECK_INTERVAL_SECONDS")

    # Cache TTLs (seconds)
    search_cache_ttl: int = Field(default=86400, alias="SEARCH_CACHE_TTL")
    details_cache_ttl: int = Field(default=3600, alias="DETAILS_CACHE_TTL")
    reviews_cache_ttl: int = Field(default=7200, alias="REVIEWS_CACHE_TTL")
    geocode_cache_ttl: int = Field(default=60 * 60 * 24 * 30, alias="GEOCODE_CACHE_TTL")

    # Deferred Yelp request queue
    request_queue_max_size: int = Field(default=100, alias="REQUEST_QUEUE_MAX_SIZE")
    request_queue_interval_seconds: int = Field(default=30, alias="REQUEST_QUEUE_INTERVAL_SECONDS")

    # Twilio
    twilio_account_sid: str = Field(default="", alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str = Field(default="", alias="TWILIO_AUTH_TOKEN")
    twilio_phone_number: str = Field(default="", alias="TWILIO_PHONE_NUMBER")

    # Phone verification
    verification_code_ttl_seconds: int = Field(default=600, alias="VERIFICATION_CODE_TTL_SECONDS")
    verification_max_attempts: int = Field(default=3, alias="VERIFICATION_MAX_ATTEMPTS")
    verification_sends_per_minute: int = Field(default=1, alias="VERIFICATION_SENDS_PER_MINUTE")

    # Google Maps
    google_maps_api_key: str = Field(default="", alias="GOOGLE_MAPS_API_KEY")

    # Admin
    admin_api_secret: str = Field(
        default=DEV_ADMIN_SECRET,
        alias="ADMIN_API_SECRET",
        description="Shared secret for the X-Admin-Secret header",
    )

    # Rotation
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    rotation_weekday: int = Field(default=1, alias="ROTATION_WEEKDAY")  # Monday=0
    rotation_hour: int = Field(default=9, alias="ROTATION_HOUR")
    rotation_minute: int = Field(default=0, alias="ROTATION_MINUTE")
    rotation_timezone: str = Field(default="America/Chicago", alias="ROTATION_TIMEZONE")
    rotation_check_interval_seconds: int = Field(default=300, alias="ROTATION_CHECK_INTERVAL_SECONDS")
    rotation_min_queue_size: int = Field(default=2, alias="ROTATION_MIN_QUEUE_SIZE")
    featured_retention_months: int = Field(default=6, alias="FEATURED_RETENTION_MONTHS")
    auto_select_featured: bool = Field(default=True, alias="AUTO_SELECT_FEATURED")
    default_city_slug: str = Field(default="austin", alias="DEFAULT_CITY_SLUG")

    # Verified visits
    max_photo_data_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_PHOTO_DATA_BYTES")

    # CORS
    cors_origins_str: str = Field(default=DEFAULT_CORS_ORIGINS, alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    @property
    def yelp_configured(self) -> bool:
        return bool(self.yelp_api_key) and not is_placeholder(self.yelp_api_key)

    @property
    def twilio_configured(self) -> bool:
        values = (self.twilio_account_sid, self.twilio_auth_token, self.twilio_phone_number)
        return all(values) and not any(is_placeholder(v) for v in values)

    @property
    def maps_configured(self) -> bool:
        return bool(self.google_maps_api_key) and not is_placeholder(self.google_maps_api_key)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_jwt_secret) and not is_placeholder(self.supabase_jwt_secret)

    @property
    def admin_secret_configured(self) -> bool:
        return bool(self.admin_api_secret) and not is_placeholder(self.admin_api_secret)

    @model_validator(mode="after")
    def check_production_secrets(self) -> "Settings":
        """Refuse to run in production with example or built-in secrets."""
        if not self.is_production:
            return self
        if not self.jwt_secret_key or is_placeholder(self.jwt_secret_key):
            raise ValueError("JWT_SECRET_KEY must be set to a real secret in production")
        if not self.admin_secret_configured or self.admin_api_secret == DEV_ADMIN_SECRET:
            raise ValueError("ADMIN_API_SECRET must be set to a real secret in production")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
