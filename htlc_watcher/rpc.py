"""
Bitcoin Cash node RPC client for fetching blocks and transactions.
"""

import httpx
from typing import Any
from pydantic import BaseModel

from .bitcoin import Block


class BitcoinRPCConfig(BaseModel):
    """Configuration for node RPC connection."""

    url: str = "http://localhost:8332"
    user: str = ""
    password: str = ""
    timeout: float = 30.0


class BitcoinRPCError(Exception):
    """Error from node RPC call."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"RPC Error {code}: {message}")


class BitcoinRPC:
    """
    Async node JSON-RPC client (Bitcoin Cash Node / bchd).

    Provides the block lookups the HTLC watcher needs.
    """

    def __init__(self, config: BitcoinRPCConfig):
        self.config = config
        self._request_id = 0

    async def _call(self, method: str, params: list[Any] | None = None) -> Any:
        """Make RPC call."""
        self._request_id += 1
        payload = {
            "jsonrpc": "1.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        auth = None
        if self.config.user and self.config.password:
            auth = (self.config.user, self.config.password)

        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            response = await client.post(
                self.config.url,
                json=payload,
                auth=auth,
            )
            # Nodes answer RPC errors with HTTP 500 and a JSON error body
            if response.status_code != 500:
                response.raise_for_status()
            result = response.json()

        if result.get("error"):
            error = result["error"]
            raise BitcoinRPCError(error.get("code", -1), error.get("message", "Unknown error"))

        return result.get("result")

    async def get_block_count(self) -> int:
        """Get current block height."""
        return await self._call("getblockcount")

    async def get_block_hash(self, height: int) -> str:
        """Get block hash at height (display format, reversed)."""
        return await self._call("getblockhash", [height])

    async def get_raw_block(self, block_hash: str) -> str:
        """Get serialized block as hex string."""
        return await self._call("getblock", [block_hash, 0])

    # Convenience methods for scanning

    async def get_block_at(self, height: int) -> Block:
        """Fetch and parse the block at ``height``."""
        block_hash = await self.get_block_hash(height)
        raw_hex = await self.get_raw_block(block_hash)
        return Block.from_hex(raw_hex, height=height)


class MockBitcoinRPC:
    """
    Mock node RPC for testing without a real node.
    Serves raw blocks registered with ``add_block``.
    """

    def __init__(self) -> None:
        self._raw_blocks: dict[str, str] = {}
        self._height_to_hash: dict[int, str] = {}
        self.calls: list[str] = []

    def add_block(self, height: int, raw_block_hex: str) -> str:
        """Add a mock block; returns its hash."""
        block_hash = Block.from_hex(raw_block_hex).hash
        self._height_to_hash[height] = block_hash
        self._raw_blocks[block_hash] = raw_block_hex
        return block_hash

    async def get_block_count(self) -> int:
        self.calls.append("getblockcount")
        return max(self._height_to_hash.keys()) if self._height_to_hash else 0

    async def get_block_hash(self, height: int) -> str:
        self.calls.append("getblockhash")
        if height not in self._height_to_hash:
            raise BitcoinRPCError(-8, f"Block height {height} not found")
        return self._height_to_hash[height]

    async def get_raw_block(self, block_hash: str) -> str:
        self.calls.append("getblock")
        if block_hash not in self._raw_blocks:
            raise BitcoinRPCError(-5, f"Block {block_hash} not found")
        return self._raw_blocks[block_hash]

    async def get_block_at(self, height: int) -> Block:
        block_hash = await self.get_block_hash(height)
        raw_hex = await self.get_raw_block(block_hash)
        return Block.from_hex(raw_hex, height=height)
