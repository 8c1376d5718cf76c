"""Account records accumulated while listing wallet accounts."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class AccountInfo:
    """One node-managed account with its balance and nonce annotations."""

    hash: str
    balance: str | None = None  # ether, 18 fractional digits
    transaction_count: int | None = None

    @property
    def is_complete(self) -> bool:
        return self.balance is not None and self.transaction_count is not None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
