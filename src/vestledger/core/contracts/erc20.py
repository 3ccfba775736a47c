"""
ERC20 Token Ledger.

This module provides the fungible token the vesting contract takes custody
of. It follows the ERC20 standard (EIP-20):
- Basic token operations (transfer, approve, transferFrom)
- Owner-only minting with an optional supply cap
- Metadata (name, symbol, decimals)
- Events (Transfer, Approval)

Security features:
- 256-bit amount range checks
- Zero address checks
- Balance underflow prevention
- Allowance validation
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from ..constants import TOKEN_DECIMALS, UINT256_MAX, ZERO_ADDRESS
from ..exceptions import TokenError

logger = logging.getLogger(__name__)


@dataclass
class TokenEvent:
    """Represents an ERC20 event."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC20Token:
    """
    ERC20 token ledger.

    Balances and allowances are integers in base units (``10**decimals``
    per whole token). Failed operations raise ``TokenError`` before any
    state is touched.
    """

    # Token metadata
    name: str
    symbol: str
    decimals: int = TOKEN_DECIMALS
    total_supply: int = 0

    # Contract address
    address: str = ""

    # Owner (for minting permissions)
    owner: str = ""

    # State
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)

    # Event log
    events: list[TokenEvent] = field(default_factory=list)

    # Supply cap (0 = unlimited)
    max_supply: int = 0

    def __post_init__(self) -> None:
        if not self.address:
            addr_input = f"{self.name}{self.symbol}{time.time()}".encode()
            addr_hash = hashlib.sha3_256(addr_input).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.address = self._normalize(self.address)

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        """
        Get the token balance of an account.

        Args:
            account: Address to check

        Returns:
            Token balance
        """
        return self.balances.get(self._normalize(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        """
        Get the allowance granted by owner to spender.

        Args:
            owner: Token owner address
            spender: Spender address

        Returns:
            Approved amount
        """
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)
        return self.allowances.get(owner_norm, {}).get(spender_norm, 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (msg.sender)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenError: If transfer fails
        """
        sender_norm = self._normalize(sender)
        recipient_norm = self._normalize(recipient)

        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)

        sender_balance = self.balances.get(sender_norm, 0)
        if sender_balance < amount:
            raise TokenError(
                f"ERC20: transfer amount exceeds balance "
                f"({amount} > {sender_balance})",
                reason="insufficient_balance",
            )

        self.balances[sender_norm] = sender_balance - amount
        self.balances[recipient_norm] = self.balances.get(recipient_norm, 0) + amount

        self._emit_transfer(sender_norm, recipient_norm, amount)

        logger.debug(
            "ERC20 transfer",
            extra={
                "event": "erc20.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )

        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """
        Approve spender to spend tokens on behalf of owner.

        Args:
            owner: Token owner (msg.sender)
            spender: Address being approved
            amount: Amount to approve

        Returns:
            True if successful

        Raises:
            TokenError: If approval fails
        """
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)

        self._validate_address(spender_norm, "spender")
        self._validate_amount(amount)

        self.allowances.setdefault(owner_norm, {})[spender_norm] = amount

        self._emit_approval(owner_norm, spender_norm, amount)

        return True

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool:
        """
        Transfer tokens using an allowance.

        Args:
            spender: Address executing transfer (msg.sender)
            from_addr: Token owner
            to_addr: Recipient
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenError: If transfer fails
        """
        spender_norm = self._normalize(spender)
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)

        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        current_allowance = self.allowance(from_norm, spender_norm)
        if current_allowance < amount:
            raise TokenError(
                f"ERC20: insufficient allowance ({current_allowance} < {amount})",
                reason="insufficient_allowance",
            )

        from_balance = self.balances.get(from_norm, 0)
        if from_balance < amount:
            raise TokenError(
                f"ERC20: transfer amount exceeds balance ({amount} > {from_balance})",
                reason="insufficient_balance",
            )

        # Unlimited approvals are never decremented
        if current_allowance != UINT256_MAX:
            self.allowances[from_norm][spender_norm] = current_allowance - amount

        self.balances[from_norm] = from_balance - amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount

        self._emit_transfer(from_norm, to_norm, amount)

        return True

    def increase_allowance(self, owner: str, spender: str, added_value: int) -> bool:
        """Increase spender's allowance, saturating at uint256 max."""
        new_allowance = min(self.allowance(owner, spender) + added_value, UINT256_MAX)
        return self.approve(owner, spender, new_allowance)

    # ==================== Minting ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """
        Mint new tokens (owner only).

        Args:
            minter: Address calling mint (must be owner)
            to: Recipient of minted tokens
            amount: Amount to mint

        Returns:
            True if successful

        Raises:
            TokenError: If minting fails
        """
        self._require_owner(minter)

        to_norm = self._normalize(to)
        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        if self.max_supply > 0 and self.total_supply + amount > self.max_supply:
            raise TokenError(
                f"ERC20: mint would exceed max supply "
                f"({self.total_supply + amount} > {self.max_supply})",
                reason="supply_cap",
            )

        self.total_supply += amount
        self.balances[to_norm] = self.balances.get(to_norm, 0) + amount

        # Mints are transfers from the zero address
        self._emit_transfer(ZERO_ADDRESS, to_norm, amount)

        logger.info(
            "ERC20 mint",
            extra={
                "event": "erc20.mint",
                "token": self.symbol,
                "to": to_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

        return True

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        """Normalize address to lowercase."""
        return address.lower()

    def _validate_address(self, address: str, field: str) -> None:
        if address == ZERO_ADDRESS or not address:
            raise TokenError(f"ERC20: {field} is zero address", reason="zero_address")

    def _validate_amount(self, amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TokenError("ERC20: amount must be an integer", reason="invalid_amount")
        if amount < 0:
            raise TokenError("ERC20: amount cannot be negative", reason="invalid_amount")
        if amount > UINT256_MAX:
            raise TokenError("ERC20: amount exceeds uint256", reason="invalid_amount")

    def _require_owner(self, caller: str) -> None:
        if self._normalize(caller) != self._normalize(self.owner):
            raise TokenError("ERC20: caller is not owner", reason="not_owner")

    def _emit_transfer(self, from_addr: str, to_addr: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Transfer",
                from_address=from_addr,
                to_address=to_addr,
                value=amount,
            )
        )

    def _emit_approval(self, owner: str, spender: str, amount: int) -> None:
        self.events.append(
            TokenEvent(
                event_type="Approval",
                from_address=owner,
                to_address=spender,
                value=amount,
            )
        )

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        """Serialize token state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "balances": dict(self.balances),
            "allowances": {k: dict(v) for k, v in self.allowances.items()},
            "max_supply": self.max_supply,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ERC20Token":
        """Deserialize token state from dictionary."""
        token = cls(
            name=data["name"],
            symbol=data["symbol"],
            decimals=data.get("decimals", TOKEN_DECIMALS),
            total_supply=data.get("total_supply", 0),
            address=data.get("address", ""),
            owner=data.get("owner", ""),
            max_supply=data.get("max_supply", 0),
        )
        token.balances = dict(data.get("balances", {}))
        token.allowances = {
            k: dict(v) for k, v in data.get("allowances", {}).items()
        }
        return token


class ERC20Factory:
    """
    Factory for creating ERC20 tokens.

    Keeps a registry of deployed tokens so they can be looked up by address.
    """

    def __init__(self) -> None:
        self.deployed_tokens: dict[str, ERC20Token] = {}

    def create_token(
        self,
        creator: str,
        name: str,
        symbol: str,
        decimals: int = TOKEN_DECIMALS,
        initial_supply: int = 0,
        max_supply: int = 0,
        mint_to: str | None = None,
    ) -> ERC20Token:
        """
        Create a new ERC20 token.

        Args:
            creator: Address creating the token (becomes owner)
            name: Token name
            symbol: Token symbol (ticker)
            decimals: Decimal places (default 18)
            initial_supply: Initial supply to mint, in base units
            max_supply: Maximum supply cap (0 = unlimited)
            mint_to: Address to mint initial supply to (defaults to creator)

        Returns:
            Deployed ERC20Token instance

        Raises:
            TokenError: If creation fails
        """
        if not name:
            raise TokenError("ERC20Factory: name cannot be empty", reason="invalid_metadata")
        if not symbol:
            raise TokenError("ERC20Factory: symbol cannot be empty", reason="invalid_metadata")
        if decimals < 0 or decimals > 18:
            raise TokenError("ERC20Factory: invalid decimals", reason="invalid_metadata")
        if initial_supply < 0:
            raise TokenError("ERC20Factory: invalid initial supply", reason="invalid_amount")
        if max_supply < 0:
            raise TokenError("ERC20Factory: invalid max supply", reason="invalid_amount")
        if max_supply > 0 and initial_supply > max_supply:
            raise TokenError("ERC20Factory: initial supply exceeds max", reason="supply_cap")

        token = ERC20Token(
            name=name,
            symbol=symbol,
            decimals=decimals,
            owner=creator,
            max_supply=max_supply,
        )

        if initial_supply > 0:
            token.mint(creator, mint_to or creator, initial_supply)

        self.deployed_tokens[token.address] = token

        logger.info(
            "ERC20 token created",
            extra={
                "event": "erc20.created",
                "address": token.address,
                "token_name": name,
                "symbol": symbol,
                "initial_supply": initial_supply,
                "creator": creator[:10],
            }
        )

        return token

    def get_token(self, address: str) -> ERC20Token | None:
        """Get a deployed token by address."""
        return self.deployed_tokens.get(address.lower())
