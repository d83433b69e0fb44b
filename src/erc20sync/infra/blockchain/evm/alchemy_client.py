"""Alchemy enhanced API client — paginated alchemy_getAssetTransfers."""

from typing import Any

from erc20sync.exceptions import ExternalServiceError
from erc20sync.infra.blockchain.evm.rpc_client import EVMRPCClient


class AlchemyClient(EVMRPCClient):
    """JSON-RPC client for an Alchemy endpoint. Standard eth_* calls are inherited."""

    async def get_asset_transfers(
        self,
        contract_address: str,
        from_block: int,
        to_block: int,
        *,
        from_address: str | None = None,
        to_address: str | None = None,
        page_key: str | None = None,
        max_count: int = 1000,
        page: int = 1,
    ) -> tuple[list[dict], str | None]:
        """Fetch one page of ERC-20 transfers. Returns (transfers, next page key)."""
        params: dict[str, Any] = {
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
            "contractAddresses": [contract_address],
            "category": ["erc20"],
            "withMetadata": True,
            "excludeZeroValue": False,
            "maxCount": hex(max_count),
            "order": "asc",
        }
        if from_address is not None:
            params["fromAddress"] = from_address
        if to_address is not None:
            params["toAddress"] = to_address
        if page_key:
            params["pageKey"] = page_key

        return await self.call(
            "alchemy_getAssetTransfers",
            [params],
            operation=f"fetch asset transfers page {page}",
            context={
                "page": page,
                "address": from_address or to_address or contract_address,
                "from_block": from_block,
                "to_block": to_block,
            },
            parse=_to_page,
        )


def _to_page(result: Any) -> tuple[list[dict], str | None]:
    if result is None:
        return [], None
    if not isinstance(result, dict):
        raise ExternalServiceError(f"alchemy_getAssetTransfers returned {type(result).__name__}")
    transfers = result.get("transfers") or []
    if not isinstance(transfers, list):
        raise ExternalServiceError("alchemy_getAssetTransfers returned malformed transfers")
    return transfers, result.get("pageKey") or None
