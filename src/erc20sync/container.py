from dependency_injector import containers, providers

from erc20sync.config import Settings
from erc20sync.infra.http.rate_limited_client import RateLimitedClient
from erc20sync.sync.service import TransferService


class Container(containers.DeclarativeContainer):
    settings = providers.Singleton(Settings)

    http_client = providers.Singleton(
        RateLimitedClient,
        rate_per_second=settings.provided.rate_per_second,
        timeout=settings.provided.request_timeout,
    )

    transfer_service = providers.Factory(
        TransferService,
        settings=settings,
        http_client=http_client,
    )
