"""EVM JSON-RPC client — block headers, Transfer logs and read-only contract calls."""

import logging
from typing import Any, Callable

from erc20sync.domain.models.transfer import BlockHeader
from erc20sync.exceptions import ExternalServiceError
from erc20sync.infra.blockchain.evm.abi import hex_to_int
from erc20sync.infra.http.rate_limited_client import RateLimitedClient
from erc20sync.infra.retry import RetryPolicy

logger = logging.getLogger(__name__)


class EVMRPCClient:
    """JSON-RPC client where every public call runs under the retry policy."""

    def __init__(
        self,
        rpc_url: str,
        http_client: RateLimitedClient,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._http = http_client
        self._retry = retry_policy or RetryPolicy()
        self._request_id = 0

    async def _request(self, method: str, params: list) -> Any:
        """Execute one JSON-RPC call and return the result field."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        data = await self._http.post_json(self._rpc_url, payload)
        if not isinstance(data, dict):
            raise ExternalServiceError(f"RPC error ({method}): unexpected response {type(data).__name__}")

        if "error" in data:
            error = data["error"]
            msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise ExternalServiceError(f"RPC error ({method}): {msg}")

        return data.get("result")

    async def call(
        self,
        method: str,
        params: list,
        *,
        operation: str,
        context: dict[str, Any] | None = None,
        parse: Callable[[Any], Any] | None = None,
    ) -> Any:
        """Run one JSON-RPC method under the retry policy.

        ``parse`` runs inside each attempt, so a structurally bad answer
        (raised as ExternalServiceError) is retried like a transport failure.
        """

        async def _attempt() -> Any:
            result = await self._request(method, params)
            return parse(result) if parse is not None else result

        return await self._retry.run(operation, _attempt, context=context)

    async def get_latest_block(self) -> BlockHeader:
        return await self.call(
            "eth_getBlockByNumber",
            ["latest", False],
            operation="load latest block",
            parse=lambda r: _to_header(r, "latest"),
        )

    async def get_block(self, block_number: int) -> BlockHeader:
        return await self.call(
            "eth_getBlockByNumber",
            [hex(block_number), False],
            operation=f"load block {block_number}",
            context={"block": block_number},
            parse=lambda r: _to_header(r, block_number),
        )

    async def get_block_timestamp(self, block_number: int) -> int:
        return (await self.get_block(block_number)).timestamp

    async def get_logs(
        self,
        address: str,
        from_block: int,
        to_block: int,
        topics: list[str | None],
    ) -> list[dict]:
        """eth_getLogs for one contract over an inclusive block window."""
        flt = {
            "address": address,
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
            "topics": topics,
        }
        return await self.call(
            "eth_getLogs",
            [flt],
            operation=f"query transfer logs {from_block}-{to_block}",
            context={"from_block": from_block, "to_block": to_block, "address": address},
            parse=_to_log_list,
        )

    async def eth_call(self, to: str, data: str, *, operation: str) -> str:
        result = await self.call(
            "eth_call",
            [{"to": to, "data": data}, "latest"],
            operation=operation,
            context={"address": to},
        )
        return result if isinstance(result, str) else ""


def _to_header(result: Any, ref: int | str) -> BlockHeader:
    # Load-balanced nodes can answer null for a block another peer already served
    if not isinstance(result, dict):
        raise ExternalServiceError(f"Block {ref} not available")
    number = hex_to_int(result.get("number"))
    timestamp = hex_to_int(result.get("timestamp"))
    if number is None or timestamp is None:
        raise ExternalServiceError(f"Block {ref} is missing number/timestamp")
    return BlockHeader(number=number, timestamp=timestamp)


def _to_log_list(result: Any) -> list[dict]:
    if result is None:
        return []
    if not isinstance(result, list):
        raise ExternalServiceError(f"eth_getLogs returned {type(result).__name__}, expected list")
    return result
