from pydantic_settings import BaseSettings, SettingsConfigDict

from uniqueport.constants import REPO_ROOT_DIR, UNIQUE_PORT_RESOURCE_TYPE, LockBackend, StoreBackend

_DEFAULT_ENV_FILES = (
    REPO_ROOT_DIR / ".env",
    ".env",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_DEFAULT_ENV_FILES, extra="ignore")

    ENV: str = "local"
    JSON_LOGGING: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 8000
    ALLOWED_ORIGINS: list[str] = ["*"]

    # The allocatable range is [PORT_LOWER_BOUND, PORT_LOWER_BOUND + PORT_RANGE_LENGTH).
    # Changing the length of an existing set makes its stored item unreadable.
    PORT_LOWER_BOUND: int = 10000
    PORT_RANGE_LENGTH: int = 50000

    STORE_BACKEND: StoreBackend = StoreBackend.DYNAMODB
    LOCK_BACKEND: LockBackend = LockBackend.DYNAMODB

    # AWS
    AWS_REGION: str = "us-west-1"
    AWS_ACCESS_KEY_ID: str | None = None
    AWS_SECRET_ACCESS_KEY: str | None = None
    DYNAMODB_ENDPOINT_URL: str | None = None
    PORTS_TABLE: str = "unique-ports"
    LOCK_TABLE: str = "unique-ports-locks"

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_LOCK_PREFIX: str = "uniqueport:lock:"

    # The lease is how long a held lock survives without a release. The wait
    # timeout bounds how long a caller blocks before giving up. They are
    # independent of each other.
    LOCK_LEASE_SECONDS: float = 15
    LOCK_WAIT_TIMEOUT_SECONDS: float = 30
    LOCK_RETRY_INTERVAL_SECONDS: float = 0.1

    # Provisioning collaborator
    RESOURCE_TYPE: str = UNIQUE_PORT_RESOURCE_TYPE
    CALLBACK_TIMEOUT_SECONDS: float = 30


settings = Settings()
