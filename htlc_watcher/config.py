"""
Configuration management for the HTLC watcher.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .covenant import CashScriptCovenant, CovenantVersion
from .parser import PROTOCOL_ID, HtlcParser
from .rpc import BitcoinRPCConfig


class Settings(BaseSettings):
    """
    Environment-based settings.

    Every field can be set through an ``HTLC_``-prefixed environment
    variable or a ``.env`` file, e.g. ``HTLC_RPC_URL``.
    """

    model_config = SettingsConfigDict(
        env_prefix="HTLC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Node RPC
    rpc_url: str = "http://localhost:8332"
    rpc_user: str = ""
    rpc_password: str = ""
    rpc_timeout: float = 30.0

    # Covenant
    covenant_version: str = Field(default="v1", description="Label of the deployed covenant")
    redeem_script_without_args: str = Field(
        default="",
        description="Compiled covenant bytecode (hex), i.e. the redeem script minus constructor args",
    )
    protocol_id: str = Field(default=PROTOCOL_ID.decode(), description="4-byte OP_RETURN tag")

    # Scanning
    start_height: Optional[int] = None
    required_confirmations: int = Field(default=1, ge=1)
    poll_interval_seconds: int = Field(default=30, ge=1)
    scan_batch_size: int = Field(default=10, ge=1)

    @field_validator("redeem_script_without_args")
    @classmethod
    def _check_bytecode_hex(cls, value: str) -> str:
        value = value.strip()
        if value.startswith(("0x", "0X")):
            value = value[2:]
        try:
            bytes.fromhex(value)
        except ValueError as e:
            raise ValueError(f"redeem_script_without_args is not valid hex: {e}") from e
        return value.lower()

    @field_validator("protocol_id")
    @classmethod
    def _check_protocol_id(cls, value: str) -> str:
        if len(value.encode()) != 4:
            raise ValueError("protocol_id must be exactly 4 bytes")
        return value


@dataclass
class WatcherConfig:
    """Full watcher configuration."""

    bitcoin_rpc: BitcoinRPCConfig
    covenant_versions: list[CovenantVersion] = field(default_factory=list)
    protocol_id: bytes = PROTOCOL_ID

    start_height: Optional[int] = None
    required_confirmations: int = 1
    poll_interval_seconds: int = 30
    scan_batch_size: int = 10  # Blocks to scan per iteration

    @classmethod
    def from_settings(cls, settings: Settings) -> "WatcherConfig":
        config = cls(
            bitcoin_rpc=BitcoinRPCConfig(
                url=settings.rpc_url,
                user=settings.rpc_user,
                password=settings.rpc_password,
                timeout=settings.rpc_timeout,
            ),
            protocol_id=settings.protocol_id.encode(),
            start_height=settings.start_height,
            required_confirmations=settings.required_confirmations,
            poll_interval_seconds=settings.poll_interval_seconds,
            scan_batch_size=settings.scan_batch_size,
        )
        if settings.redeem_script_without_args:
            config.add_covenant_version(
                settings.covenant_version, settings.redeem_script_without_args
            )
        return config

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "WatcherConfig":
        """Load configuration from environment."""
        settings = Settings(_env_file=env_path) if env_path else Settings()
        return cls.from_settings(settings)

    def add_covenant_version(self, name: str, bytecode_hex: str) -> bool:
        """
        Register a covenant version.

        Returns False, leaving the list unchanged, when the same bytecode is
        already configured (e.g. both in the environment and on the command line).
        """
        version = CovenantVersion.from_hex(name, bytecode_hex)
        for existing in self.covenant_versions:
            if existing.redeem_script_without_args == version.redeem_script_without_args:
                return False
        self.covenant_versions.append(version)
        return True

    def build_parsers(self) -> list[HtlcParser]:
        """One parser per configured covenant version."""
        return [
            HtlcParser(version, CashScriptCovenant(version), protocol_id=self.protocol_id)
            for version in self.covenant_versions
        ]
