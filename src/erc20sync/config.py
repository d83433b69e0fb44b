from pydantic_settings import BaseSettings

from erc20sync.domain.enums import TransferSourceKind


class Settings(BaseSettings):
    alchemy_api_key: str = ""
    transfer_source: TransferSourceKind | None = None  # None = pick by credentials
    rpc_url: str = ""  # overrides the network table endpoint
    log_chunk_size: int = 2_000
    page_size: int = 1_000
    request_timeout: float = 30.0
    max_attempts: int = 3
    retry_initial_delay: float = 0.2
    retry_max_delay: float = 5.0
    timestamp_concurrency: int = 8
    rate_per_second: float = 10.0

    @property
    def resolved_source(self) -> TransferSourceKind:
        if self.transfer_source is not None:
            return self.transfer_source
        if self.alchemy_api_key.strip():
            return TransferSourceKind.ASSET_TRANSFERS
        return TransferSourceKind.LOG_SCAN

    class Config:
        env_file = ".env"


settings = Settings()
