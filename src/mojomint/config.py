"""MojoMint configuration loading.

Resolution order for each value (highest priority first):
1. Environment variable (``MOJOMINT_*``, optionally from a .env file)
2. ``mojomint.yaml`` in the working directory (or an explicit path)
3. Built-in defaults below
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from mojomint.errors import MojoMintError

DEFAULT_CONFIG_FILENAME = "mojomint.yaml"

DEFAULT_NARRATIVE_URL = "https://narratives.producerprotocol.pro"
DEFAULT_METADATA_URL = "https://metaupload.producerprotocol.pro"
DEFAULT_IMAGE_URL = "https://nftartist.producerprotocol.pro"
DEFAULT_REWARDS_URL = "https://mojotokenrewards.producerprotocol.pro"

OPTIMISM_CHAIN_ID = 10
DEFAULT_CONTRACT_ADDRESS = "0x914B1339944D48236738424e2dbdbb72a212B2F5"
# 0.000777 ETH, used when the contract reports a zero fee
DEFAULT_FALLBACK_FEE_WEI = 777_000_000_000_000
DEFAULT_EXPLORER_TX_URL = "https://optimistic.etherscan.io/tx/"

DEFAULT_PATH_IMAGES: dict[str, str] = {
    "A": "https://bafybeiakvemnjhgbgknb4luge7kayoyslnkmgqcw7xwaoqmr5l6ujnalum.ipfs.dweb.link?filename=dktjnft1.gif",  # noqa: E501
    "B": "https://bafybeiapjhb52gxhsnufm2mcrufk7d35id3lnexwftxksbcmbx5hsuzore.ipfs.dweb.link?filename=dktjnft2.gif",  # noqa: E501
    "C": "https://bafybeifoew7nyl5p5xxroo3y4lhb2fg2a6gifmd7mdav7uibi4igegehjm.ipfs.dweb.link?filename=dktjnft3.gif",  # noqa: E501
}


class ConfigError(MojoMintError):
    """Raised when the configuration file cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load config at {path}: {reason}")


@dataclass
class ServicesConfig:
    """Base URLs of the remote workers.

    Attributes:
        narrative_url: Narrative update/finalize/reset worker.
        metadata_url: IPFS metadata pinning worker.
        image_url: Art generation worker.
        rewards_url: Mojo token reward worker. None disables rewards.
        timeout: Per-request timeout in seconds.
    """

    narrative_url: str = DEFAULT_NARRATIVE_URL
    metadata_url: str = DEFAULT_METADATA_URL
    image_url: str = DEFAULT_IMAGE_URL
    rewards_url: str | None = DEFAULT_REWARDS_URL
    timeout: float = 60.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServicesConfig:
        return cls(
            narrative_url=os.getenv("MOJOMINT_NARRATIVE_URL")
            or data.get("narrative_url", DEFAULT_NARRATIVE_URL),
            metadata_url=os.getenv("MOJOMINT_METADATA_URL")
            or data.get("metadata_url", DEFAULT_METADATA_URL),
            image_url=os.getenv("MOJOMINT_IMAGE_URL") or data.get("image_url", DEFAULT_IMAGE_URL),
            rewards_url=os.getenv("MOJOMINT_REWARDS_URL")
            or data.get("rewards_url", DEFAULT_REWARDS_URL),
            timeout=float(data.get("timeout", 60.0)),
        )


@dataclass
class ChainConfig:
    """Network and contract settings.

    Attributes:
        chain_id: Chain the wallet must be on before any value-bearing call.
        rpc_url: JSON-RPC endpoint used by the web3 wallet adapter.
        contract_address: Mint contract address.
        fallback_fee_wei: Fee used when the contract reports zero.
        confirmation_timeout: Seconds to wait for a receipt. None waits forever.
        explorer_tx_url: Prefix for transaction links.
    """

    chain_id: int = OPTIMISM_CHAIN_ID
    rpc_url: str | None = None
    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    fallback_fee_wei: int = DEFAULT_FALLBACK_FEE_WEI
    confirmation_timeout: float | None = 300.0
    explorer_tx_url: str = DEFAULT_EXPLORER_TX_URL

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainConfig:
        env_chain = os.getenv("MOJOMINT_CHAIN_ID")
        timeout = data.get("confirmation_timeout", 300.0)
        return cls(
            chain_id=int(env_chain) if env_chain else int(data.get("chain_id", OPTIMISM_CHAIN_ID)),
            rpc_url=os.getenv("MOJOMINT_RPC_URL") or data.get("rpc_url"),
            contract_address=os.getenv("MOJOMINT_CONTRACT_ADDRESS")
            or data.get("contract_address", DEFAULT_CONTRACT_ADDRESS),
            fallback_fee_wei=int(data.get("fallback_fee_wei", DEFAULT_FALLBACK_FEE_WEI)),
            confirmation_timeout=float(timeout) if timeout is not None else None,
            explorer_tx_url=data.get("explorer_tx_url", DEFAULT_EXPLORER_TX_URL),
        )

    def tx_link(self, tx_hash: str) -> str:
        """Explorer URL for a transaction hash."""
        return f"{self.explorer_tx_url}{tx_hash}"


@dataclass
class MintPolicy:
    """How the orchestrator treats degraded outcomes.

    Attributes:
        allow_fallback_uri: Mint with a fallback URI when pinning fails.
            When False a fallback ends the attempt in error.
        award_rewards: Call the reward worker after a successful mint.
    """

    allow_fallback_uri: bool = True
    award_rewards: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MintPolicy:
        return cls(
            allow_fallback_uri=bool(data.get("allow_fallback_uri", True)),
            award_rewards=bool(data.get("award_rewards", True)),
        )


@dataclass
class MintConfig:
    """Top-level configuration."""

    services: ServicesConfig = field(default_factory=ServicesConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    policy: MintPolicy = field(default_factory=MintPolicy)
    path_images: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PATH_IMAGES))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MintConfig:
        """Create config from a parsed YAML mapping.

        Missing sections fall back to defaults; environment overrides are
        applied by the section parsers.
        """
        path_images = dict(DEFAULT_PATH_IMAGES)
        path_images.update({str(k): str(v) for k, v in dict(data.get("path_images", {})).items()})
        return cls(
            services=ServicesConfig.from_dict(dict(data.get("services", {}))),
            chain=ChainConfig.from_dict(dict(data.get("chain", {}))),
            policy=MintPolicy.from_dict(dict(data.get("policy", {}))),
            path_images=path_images,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serializable form, used by ``mojomint init``."""
        return {
            "services": {
                "narrative_url": self.services.narrative_url,
                "metadata_url": self.services.metadata_url,
                "image_url": self.services.image_url,
                "rewards_url": self.services.rewards_url,
                "timeout": self.services.timeout,
            },
            "chain": {
                "chain_id": self.chain.chain_id,
                "rpc_url": self.chain.rpc_url,
                "contract_address": self.chain.contract_address,
                "fallback_fee_wei": self.chain.fallback_fee_wei,
                "confirmation_timeout": self.chain.confirmation_timeout,
                "explorer_tx_url": self.chain.explorer_tx_url,
            },
            "policy": {
                "allow_fallback_uri": self.policy.allow_fallback_uri,
                "award_rewards": self.policy.award_rewards,
            },
            "path_images": dict(self.path_images),
        }


def create_default_config() -> MintConfig:
    """Defaults with environment overrides applied."""
    return MintConfig.from_dict({})


def load_config(path: Path | None = None) -> MintConfig:
    """Load configuration from a YAML file.

    Args:
        path: Config file. Defaults to ``./mojomint.yaml``; a missing default
            file yields the default configuration.

    Returns:
        MintConfig instance.

    Raises:
        ConfigError: If an explicit file is missing or any file is invalid.
    """
    explicit = path is not None
    config_path = path or Path(DEFAULT_CONFIG_FILENAME)

    if not config_path.exists():
        if explicit:
            raise ConfigError(config_path, "File not found")
        return create_default_config()

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            return create_default_config()

        return MintConfig.from_dict(dict(data))
    except Exception as e:
        raise ConfigError(config_path, str(e)) from e
