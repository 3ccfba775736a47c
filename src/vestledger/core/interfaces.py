"""
Collaborator Protocol Interfaces - Decoupling the vesting contract from the token.

The vesting contract never stores balances itself. It depends on this
protocol instead of a concrete token class, which enables:
- Easy substitution of test doubles (hostile or failing tokens)
- Validation at construction time that a real token was supplied

Usage:
    token = ERC20Token(name="Vest", symbol="VST", owner=admin)
    vesting = VestingContract(token=token, owner=admin)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenLedger(Protocol):
    """
    Protocol for the fungible token ledger that holds custody balances.

    Transfer methods return True on success. Implementations may either
    raise or return False to signal failure.
    """

    address: str

    def balance_of(self, account: str) -> int:
        """Get the token balance of an account."""
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Push tokens from sender to recipient."""
        ...

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool:
        """Pull tokens from from_addr using spender's allowance."""
        ...
