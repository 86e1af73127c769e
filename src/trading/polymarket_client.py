"""
Polymarket CLOB API client for trading operations.
Handles order book reads, order placement and the USDC allowance.
"""

import asyncio
import base64
import hashlib
import hmac
import json
import time
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from eth_account import Account
from web3 import Web3

from src.config import BotConfig
from src.errors import ConfigurationError, VenueError
from src.logger import get_logger
from src.models import Depth, OrderResult, Side, Venue
from src.trading.base import BaseVenueClient


logger = get_logger("polymarket")


# Polygon mainnet contracts
USDC_ADDRESS = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"
CONDITIONAL_TOKENS_ADDRESS = "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045"

ERC20_APPROVE_ABI = [
    {
        "constant": False,
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    }
]

MAX_UINT256 = 2 ** 256 - 1
APPROVE_GAS_PRICE = 100_000_000_000
APPROVE_GAS_LIMIT = 200_000


class PolymarketClient(BaseVenueClient):
    """
    Async client for Polymarket's CLOB (Central Limit Order Book) API.

    Polymarket uses a hybrid on-chain/off-chain model:
    - Orders are signed off-chain
    - Matching happens off-chain on their CLOB
    - Settlement is on-chain (Polygon), which is why USDC must be
      approved for the conditional tokens contract before trading
    """

    venue = Venue.POLYMARKET

    def __init__(self, config: BotConfig):
        super().__init__(config)
        self._private_key = config.polymarket.private_key
        self._api_key = config.polymarket.api_key
        self._api_secret = config.polymarket.api_secret
        self._api_passphrase = config.polymarket.api_passphrase
        self._chain_id = config.polymarket.chain_id
        self._dry_run = config.development.dry_run

        if self._private_key:
            self._account = Account.from_key(self._private_key)
            self._address = self._account.address
        elif self._dry_run:
            # Dummy address so depth reads work without credentials
            self._account = None
            self._address = "0x0000000000000000000000000000000000000000"
            logger.warning("No private key provided - running in dry-run mode with dummy address")
        else:
            raise ConfigurationError("PRIVATE_KEY is required for live trading!")

        self._clob_client: Optional[httpx.AsyncClient] = None

    @property
    def address(self) -> str:
        return self._address

    async def connect(self) -> None:
        """Initialize the CLOB HTTP client."""
        self._clob_client = httpx.AsyncClient(
            base_url=self.config.polymarket.clob_api_url,
            timeout=30.0,
        )
        self._is_connected = True

        mode = "DRY RUN" if self._dry_run else "LIVE"
        logger.info(f"Connected to Polymarket ({mode})", address=self._address)

    async def disconnect(self) -> None:
        """Close the CLOB HTTP client."""
        if self._clob_client:
            await self._clob_client.aclose()
        self._is_connected = False
        logger.info("Disconnected from Polymarket")

    def _create_l2_headers(self, method: str, path: str, body: str = "") -> dict:
        """Create Level 2 authentication headers (trading)."""
        timestamp = str(int(time.time() * 1000))

        message = timestamp + method.upper() + path + body
        try:
            # Secrets are URL-safe base64, sometimes without padding
            secret = self._api_secret
            padding_needed = len(secret) % 4
            if padding_needed:
                secret += "=" * (4 - padding_needed)

            signature = hmac.new(
                base64.urlsafe_b64decode(secret),
                message.encode(),
                hashlib.sha256,
            ).digest()
            signature_b64 = base64.b64encode(signature).decode()
        except Exception as e:
            logger.error(f"Failed to create API signature: {e}")
            raise ConfigurationError(
                f"Invalid POLYMARKET_API_SECRET format. Must be base64 encoded. Error: {e}"
            ) from e

        return {
            "POLY_ADDRESS": self._address,
            "POLY_API_KEY": self._api_key,
            "POLY_SIGNATURE": signature_b64,
            "POLY_TIMESTAMP": timestamp,
            "POLY_PASSPHRASE": self._api_passphrase,
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        if self._clob_client is None:
            raise VenueError(self.venue.value, "client is not connected")
        return self._clob_client

    async def get_depth(self, token_id: str) -> Depth:
        """
        Get the order book for a token.

        Args:
            token_id: The CLOB token ID

        Returns:
            Depth with every bid and ask level
        """
        logger.debug(f"Fetching Polymarket depth for token {token_id}")

        response = await self._client().get("/book", params={"token_id": token_id})
        response.raise_for_status()
        data = response.json()

        bids = data.get("bids") if isinstance(data, dict) else None
        asks = data.get("asks") if isinstance(data, dict) else None
        if bids is None or asks is None:
            raise VenueError(self.venue.value, "Invalid response format from Polymarket API")

        depth = Depth(
            buy={str(level["price"]): str(level["size"]) for level in bids},
            sell={str(level["price"]): str(level["size"]) for level in asks},
        )

        logger.debug(
            "Polymarket depth data retrieved",
            buy_levels=len(depth.buy),
            sell_levels=len(depth.sell),
        )
        return depth

    async def create_order(
        self,
        token_id: str,
        side: Side,
        size: Decimal,
        price: Decimal,
        order_type: str = "GTC",  # Good Till Cancelled
    ) -> OrderResult:
        """
        Place a limit order on Polymarket.

        Args:
            token_id: Token to trade
            side: BUY or SELL
            size: Number of shares
            price: Limit price in the unit interval
            order_type: Order type (GTC, FOK, IOC)

        Returns:
            OrderResult, unsuccessful if the CLOB rejected the order
        """
        logger.info(
            f"Creating {side.value} order on Polymarket",
            size=str(size),
            price=str(price),
        )

        order_payload = {
            "tokenID": token_id,
            "side": "BUY" if side == Side.BUY else "SELL",
            "size": str(size),
            "price": str(price),
            "feeRateBps": 0,
            "orderType": order_type,
        }
        body = json.dumps(order_payload)

        try:
            headers = self._create_l2_headers("POST", "/order", body)
            response = await self._client().post("/order", content=body, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(
                "Failed to create Polymarket order",
                error=str(e),
                token_id=token_id,
                size=str(size),
                price=str(price),
            )
            exchange_response = None
            if isinstance(e, httpx.HTTPStatusError):
                exchange_response = e.response.text
            return OrderResult.failed(str(e), exchange_response)

        if isinstance(data, dict) and data.get("success") is False:
            error = data.get("errorMsg") or "Order rejected by Polymarket"
            logger.error("Polymarket rejected order", error=error)
            return OrderResult.failed(error, data)

        order_id = data.get("orderID") if isinstance(data, dict) else None
        logger.info("Polymarket order created", order_id=order_id)

        return OrderResult(
            success=True,
            order_id=order_id or "unknown-order-id",
            exchange_response=data,
        )

    async def get_order_status(self, order_id: str) -> Dict[str, Any]:
        """Get the status of an order."""
        if self._dry_run:
            return {"status": "FILLED", "dry_run": True}

        path = f"/data/order/{order_id}"
        response = await self._client().get(path, headers=self._create_l2_headers("GET", path))
        response.raise_for_status()
        return response.json()

    async def approve_allowance(self, token_id: str) -> bool:
        """
        Approve the conditional tokens contract to spend USDC.

        Must succeed once before any order can settle.

        Returns:
            True when the approval transaction was mined successfully

        Raises:
            VenueError if the transaction reverted
        """
        logger.info(f"Approving allowance for token {token_id}")

        if self._dry_run:
            logger.info("DRY RUN: Would approve token allowance on Polymarket")
            return True

        tx_hash = await asyncio.to_thread(self._send_approval)
        logger.info("Allowance approval complete", tx_hash=tx_hash)
        return True

    def _send_approval(self) -> str:
        """Sign and submit the USDC approve transaction, waiting for the receipt."""
        w3 = Web3(Web3.HTTPProvider(self.config.polymarket.rpc_url))
        usdc = w3.eth.contract(
            address=Web3.to_checksum_address(USDC_ADDRESS),
            abi=ERC20_APPROVE_ABI,
        )

        txn = usdc.functions.approve(
            Web3.to_checksum_address(CONDITIONAL_TOKENS_ADDRESS),
            MAX_UINT256,
        ).build_transaction({
            "from": self._address,
            "nonce": w3.eth.get_transaction_count(self._address),
            "gasPrice": APPROVE_GAS_PRICE,
            "gas": APPROVE_GAS_LIMIT,
            "chainId": self._chain_id,
        })

        signed = w3.eth.account.sign_transaction(txn, self._private_key)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info("Setting USDC allowance for CTF", tx_hash=tx_hash.hex())

        receipt = w3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] != 1:
            raise VenueError(self.venue.value, f"Allowance transaction {tx_hash.hex()} reverted")
        return tx_hash.hex()
