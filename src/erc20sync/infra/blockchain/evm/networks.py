"""Static EVM network table: chain id, public RPC, provider subdomain, explorer."""

from dataclasses import dataclass

from erc20sync.exceptions import ConfigurationError

ALCHEMY_URL_TEMPLATE = "https://{subdomain}.g.alchemy.com/v2/{api_key}"


@dataclass(frozen=True)
class Network:
    key: str
    name: str
    chain_id: int
    rpc_url: str
    explorer_url: str | None = None
    alchemy_subdomain: str | None = None  # None = provider does not serve this chain


NETWORKS: dict[str, Network] = {
    n.key: n
    for n in (
        Network("mainnet", "Ethereum", 1, "https://ethereum-rpc.publicnode.com",
                "https://etherscan.io", "eth-mainnet"),
        Network("sepolia", "Sepolia", 11155111, "https://ethereum-sepolia-rpc.publicnode.com",
                "https://sepolia.etherscan.io", "eth-sepolia"),
        Network("arbitrum", "Arbitrum One", 42161, "https://arb1.arbitrum.io/rpc",
                "https://arbiscan.io", "arb-mainnet"),
        Network("optimism", "OP Mainnet", 10, "https://mainnet.optimism.io",
                "https://optimistic.etherscan.io", "opt-mainnet"),
        Network("base", "Base", 8453, "https://mainnet.base.org",
                "https://basescan.org", "base-mainnet"),
        Network("polygon", "Polygon", 137, "https://polygon-rpc.com",
                "https://polygonscan.com", "polygon-mainnet"),
        Network("bsc", "BNB Smart Chain", 56, "https://bsc-dataseed1.bnbchain.org",
                "https://bscscan.com", "bnb-mainnet"),
        Network("avalanche", "Avalanche", 43114, "https://api.avax.network/ext/bc/C/rpc",
                "https://snowtrace.io", "avax-mainnet"),
        Network("gnosis", "Gnosis", 100, "https://rpc.gnosischain.com",
                "https://gnosisscan.io", "gnosis-mainnet"),
        Network("linea", "Linea Mainnet", 59144, "https://rpc.linea.build",
                "https://lineascan.build"),
    )
}

ALIASES: dict[str, str] = {"ethereum": "mainnet", "eth": "mainnet", "arbitrum-one": "arbitrum"}


def normalize_network_key(network: str) -> str:
    key = network.strip().lower()
    return ALIASES.get(key, key)


def resolve_network(network: str) -> Network:
    """Look up a network by key or alias. Unknown keys are a configuration error."""
    found = NETWORKS.get(normalize_network_key(network))
    if found is None:
        raise ConfigurationError(f'Unsupported network "{network}"', context={"network": network})
    return found


def alchemy_rpc_url(network: Network, api_key: str) -> str:
    key = api_key.strip()
    if not key:
        raise ConfigurationError(
            "Alchemy API key is required for the asset transfer source",
            context={"network": network.key},
        )
    if network.alchemy_subdomain is None:
        raise ConfigurationError(
            f"Network {network.name} is not served by Alchemy",
            context={"network": network.key},
        )
    return ALCHEMY_URL_TEMPLATE.format(subdomain=network.alchemy_subdomain, api_key=key)


def explorer_tx_url(network: str, tx_hash: str) -> str | None:
    found = NETWORKS.get(normalize_network_key(network))
    if found is None or not found.explorer_url:
        return None
    return f"{found.explorer_url.rstrip('/')}/tx/{tx_hash}"
