from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    base_url: str = "http://localhost:8000"
    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"
    redis_socket_timeout: float = 0.5

    jwt_secret: str = "dev-secret-change-me"
    jwt_issuer: str = "taskflow-api"
    jwt_audience: str = "taskflow-api"
    jwt_expires_minutes: int = 60

    magic_link_expires_minutes: int = 15
    magic_link_pepper: str = "dev-pepper-change-me"

    invitation_ttl_days: int = 7

    # admins may grant their own tier when enabled
    rbac_allow_peer_role_assignment: bool = False

    migration_default_role: str = "editor"
    migration_seconds_per_project: int = 2
    migration_lock_minutes: int = 15
    migration_status_limit: int = 10

    # rate limiting (redis)
    rate_limit_enabled: bool = True
    rate_limit_auth_request_link_per_min: int = 20
    rate_limit_auth_redeem_per_min: int = 30
    rate_limit_invites_per_min: int = 30

settings = Settings()
