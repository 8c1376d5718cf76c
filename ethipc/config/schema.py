"""Configuration schema using Pydantic.

Single data model and defaults for the client, persisted to ~/.ethipc/config.json.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings


class NodeConfig(BaseModel):
    """IPC endpoint of the local Ethereum node."""
    ipc_path: str = "~/.ethereum/geth.ipc"
    connect_timeout_seconds: float = Field(default=2.0, gt=0)
    read_chunk_size: int = Field(default=4096, gt=0)
    max_buffer_bytes: int = Field(default=4 * 1024 * 1024, gt=0)  # largest single response accepted


class DisplayConfig(BaseModel):
    """How decoded amounts are rendered."""
    decimal_point: str = Field(default=".", min_length=1, max_length=1)


class PeerHealthConfig(BaseModel):
    """Peer count thresholds for the connection health label."""
    fair_threshold: int = Field(default=3, ge=1)  # at least this many peers -> fair
    good_threshold: int = Field(default=8, ge=1)  # at least this many peers -> good


class WalletConfig(BaseModel):
    """Defaults for account operations."""
    unlock_duration_seconds: int = Field(default=300, ge=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)  # CLI wait for a reply


class LoggingConfig(BaseModel):
    """Loguru sinks."""
    level: str = "INFO"
    file_enabled: bool = False


class Config(BaseSettings):
    """Root configuration for ethipc."""
    node: NodeConfig = Field(default_factory=NodeConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    peers: PeerHealthConfig = Field(default_factory=PeerHealthConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(
        env_prefix="ETHIPC_",
        env_nested_delimiter="__"
    )
