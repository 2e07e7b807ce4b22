"""BridgeLedger: Storage contract for bridge transaction records.

The production store lives outside this package; it only has to implement
the four operations of :class:`BridgeLedger`. :class:`InMemoryBridgeLedger`
is the process-local implementation used by default and in tests.

Records are created ``pending`` and leave that state exactly once, to
``completed`` or ``rejected``. They are never deleted.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .tokens import ChainId


class TransactionStatus(str, Enum):
    """Lifecycle state of a bridge transaction."""

    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class BridgeTransaction:
    """A bridge request awaiting or past admin fulfillment.

    :ivar id: Ledger-assigned identifier.
    :ivar depositor: Depositor address, lower-cased.
    :ivar amount: Deposited amount as submitted.
    :ivar quoted_output_amount: Server-side quoted amount on the destination chain.
    :ivar slippage_bps: Slippage applied to the quote.
    :ivar status: Lifecycle state.
    :ivar source_chain_id: Chain the deposit was made on.
    :ivar dest_chain_id: Chain the output is delivered on.
    :ivar tx_hash: Deposit transaction hash, if supplied.
    :ivar created_at: Creation time (UTC).
    :ivar completed_tx_hash: Destination-chain transaction hash after fulfillment.
    """

    id: int
    depositor: str
    amount: str
    quoted_output_amount: str
    slippage_bps: int
    status: TransactionStatus
    source_chain_id: ChainId
    dest_chain_id: int
    tx_hash: str | None
    created_at: datetime
    completed_tx_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation used by the HTTP API."""
        return {
            "id": self.id,
            "depositor": self.depositor,
            "amount": self.amount,
            "quotedOutputAmount": self.quoted_output_amount,
            "slippageBps": self.slippage_bps,
            "status": self.status.value,
            "sourceChainId": self.source_chain_id,
            "destChainId": self.dest_chain_id,
            "txHash": self.tx_hash,
            "createdAt": self.created_at.isoformat(),
            "completedTxHash": self.completed_tx_hash,
        }


class BridgeLedger(ABC):
    """CRUD contract for bridge transaction storage."""

    @abstractmethod
    async def create(
        self,
        *,
        depositor: str,
        amount: str,
        quoted_output_amount: str,
        slippage_bps: int,
        source_chain_id: ChainId,
        dest_chain_id: int,
        tx_hash: str | None = None,
    ) -> BridgeTransaction:
        """Persist a new pending transaction and return it."""
        pass

    @abstractmethod
    async def list_by_depositor(self, depositor: str) -> list[BridgeTransaction]:
        """All transactions of one (lower-cased) depositor, newest first."""
        pass

    @abstractmethod
    async def list_pending(self) -> list[BridgeTransaction]:
        """All pending transactions, newest first."""
        pass

    @abstractmethod
    async def update_status(
        self,
        transaction_id: int,
        status: TransactionStatus,
        completed_tx_hash: str | None = None,
    ) -> BridgeTransaction | None:
        """Move a pending transaction to ``status``.

        :returns: The updated record, or None if the id is unknown or the
            record is no longer pending.
        """
        pass


class InMemoryBridgeLedger(BridgeLedger):
    """Process-local ledger. Contents are lost on restart."""

    def __init__(self) -> None:
        self._records: dict[int, BridgeTransaction] = {}
        self._ids = itertools.count(1)

    async def create(
        self,
        *,
        depositor: str,
        amount: str,
        quoted_output_amount: str,
        slippage_bps: int,
        source_chain_id: ChainId,
        dest_chain_id: int,
        tx_hash: str | None = None,
    ) -> BridgeTransaction:
        record = BridgeTransaction(
            id=next(self._ids),
            depositor=depositor.lower(),
            amount=amount,
            quoted_output_amount=quoted_output_amount,
            slippage_bps=slippage_bps,
            status=TransactionStatus.PENDING,
            source_chain_id=source_chain_id,
            dest_chain_id=dest_chain_id,
            tx_hash=tx_hash,
            created_at=datetime.now(timezone.utc),
        )
        self._records[record.id] = record
        return record

    async def list_by_depositor(self, depositor: str) -> list[BridgeTransaction]:
        wanted = depositor.lower()
        return self._newest_first(r for r in self._records.values() if r.depositor == wanted)

    async def list_pending(self) -> list[BridgeTransaction]:
        return self._newest_first(
            r for r in self._records.values() if r.status is TransactionStatus.PENDING
        )

    async def update_status(
        self,
        transaction_id: int,
        status: TransactionStatus,
        completed_tx_hash: str | None = None,
    ) -> BridgeTransaction | None:
        record = self._records.get(transaction_id)
        if record is None or record.status is not TransactionStatus.PENDING:
            return None
        updated = replace(record, status=status, completed_tx_hash=completed_tx_hash)
        self._records[transaction_id] = updated
        return updated

    @staticmethod
    def _newest_first(records) -> list[BridgeTransaction]:
        return sorted(records, key=lambda r: r.id, reverse=True)
