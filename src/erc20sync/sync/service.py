"""TransferService — turns configuration into a TransferPipeline and runs it."""

import logging

from erc20sync.config import Settings
from erc20sync.domain.enums import TransferSourceKind
from erc20sync.domain.models.transfer import DateRange, TransferRecord
from erc20sync.infra.blockchain.base import TransferSource
from erc20sync.infra.blockchain.evm.abi import assert_address
from erc20sync.infra.blockchain.evm.alchemy_client import AlchemyClient
from erc20sync.infra.blockchain.evm.asset_transfer_source import AssetTransferSource
from erc20sync.infra.blockchain.evm.log_scan_source import LogScanSource
from erc20sync.infra.blockchain.evm.networks import Network, alchemy_rpc_url, resolve_network
from erc20sync.infra.blockchain.evm.rpc_client import EVMRPCClient
from erc20sync.infra.http.rate_limited_client import RateLimitedClient
from erc20sync.infra.retry import RetryPolicy
from erc20sync.sync.block_range import parse_date_range
from erc20sync.sync.pipeline import TransferPipeline
from erc20sync.sync.progress import ProgressObserver, ProgressReporter

logger = logging.getLogger(__name__)


class TransferService:
    """Entry point: validates inputs, selects the configured source, runs the pipeline."""

    def __init__(self, settings: Settings, http_client: RateLimitedClient) -> None:
        self._settings = settings
        self._http = http_client
        self._retry = RetryPolicy.from_settings(settings)

    def rpc_url_for(self, network: Network) -> str:
        if self._settings.rpc_url.strip():
            return self._settings.rpc_url.strip()
        if self._settings.alchemy_api_key.strip() and network.alchemy_subdomain:
            return alchemy_rpc_url(network, self._settings.alchemy_api_key)
        return network.rpc_url

    def build_source(
        self, network: Network, progress: ProgressReporter
    ) -> tuple[EVMRPCClient, TransferSource]:
        """Build the RPC client and source the settings ask for. No fallback between variants."""
        kind = self._settings.resolved_source

        if kind is TransferSourceKind.ASSET_TRANSFERS:
            client = AlchemyClient(
                alchemy_rpc_url(network, self._settings.alchemy_api_key), self._http, self._retry
            )
            return client, AssetTransferSource(client, self._settings.page_size, progress)

        rpc = EVMRPCClient(self.rpc_url_for(network), self._http, self._retry)
        return rpc, LogScanSource(rpc, self._settings.log_chunk_size, progress)

    async def get_transfer_records(
        self,
        network: str,
        token_address: str,
        from_date: str,
        to_date: str,
        wallet_address: str | None = None,
        observer: ProgressObserver | None = None,
    ) -> list[TransferRecord]:
        # Validation and configuration errors surface before any I/O
        date_range = DateRange(from_date=from_date, to_date=to_date)
        parse_date_range(date_range)
        token = assert_address(token_address, "token address")
        wallet = assert_address(wallet_address, "wallet address") if wallet_address else None
        resolved = resolve_network(network)

        progress = ProgressReporter(observer)
        rpc, source = self.build_source(resolved, progress)
        logger.info(
            "Fetching %s transfers on %s (source=%s, wallet=%s, range=%s..%s)",
            token, resolved.key, self._settings.resolved_source.value, wallet or "-", from_date, to_date,
        )

        pipeline = TransferPipeline(rpc, source, self._settings.timestamp_concurrency, progress)
        return await pipeline.run(resolved.key, token, date_range, wallet)
