"""BridgeService: Records bridge submissions and admin decisions.

Quotes are always recomputed server-side on submission; a quote sent by the
client is never trusted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .BridgeLedger import BridgeLedger, BridgeTransaction, TransactionStatus
from .tokens import DEFAULT_SOURCE_CHAIN_ID, MEGAETH_CHAIN_ID, ChainId, parse_chain_id

if TYPE_CHECKING:
    from .QuoteCalculator import QuoteCalculator

logger = logging.getLogger(__name__)

SUBMIT_MESSAGE = "Bridge initiated! Please wait approximately 5 minutes for completion."


class TransactionNotFound(LookupError):
    """Raised when an admin action references an unknown or settled transaction."""

    def __init__(self, transaction_id: Any):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


@dataclass(frozen=True)
class BridgeSubmission:
    """A freshly recorded bridge transaction plus what to tell the user."""

    transaction: BridgeTransaction
    estimated_time: str
    message: str = SUBMIT_MESSAGE

    def to_dict(self) -> dict[str, Any]:
        payload = self.transaction.to_dict()
        payload["estimatedTime"] = self.estimated_time
        payload["message"] = self.message
        return payload


class BridgeService:
    """Boundary between bridge requests and the transaction ledger.

    :ivar ledger: Transaction storage.
    :ivar calculator: Quote engine used to price submissions.
    :ivar dest_chain_id: Chain every bridge delivers to.
    :ivar default_source_chain_id: Source chain assumed when none is given.
    """

    def __init__(
        self,
        ledger: BridgeLedger,
        calculator: QuoteCalculator,
        dest_chain_id: int = MEGAETH_CHAIN_ID,
        default_source_chain_id: ChainId = DEFAULT_SOURCE_CHAIN_ID,
    ) -> None:
        self.ledger = ledger
        self.calculator = calculator
        self.dest_chain_id = dest_chain_id
        self.default_source_chain_id = default_source_chain_id

    async def submit(
        self,
        depositor: str,
        amount: Any,
        tx_hash: str | None = None,
        source_chain_id: ChainId | None = None,
    ) -> BridgeSubmission:
        """Quote a deposit and record it as a pending bridge transaction.

        :param depositor: Depositor address (stored lower-cased).
        :param amount: Deposited amount of the source chain's token.
        :param tx_hash: Deposit transaction hash, if already known.
        :param source_chain_id: Chain of the deposit (default: Base).
        :returns: The recorded transaction with ETA and message.
        :raises ValueError: If the depositor is empty.
        :raises InvalidAmount: If the amount is not a positive number.
        """
        depositor = (depositor or "").strip()
        if not depositor:
            raise ValueError("Depositor is required")

        chain_id = parse_chain_id(source_chain_id)
        if chain_id is None:
            chain_id = self.default_source_chain_id

        quote = await self.calculator.quote(amount, chain_id=chain_id)
        transaction = await self.ledger.create(
            depositor=depositor.lower(),
            amount=quote.input_amount,
            quoted_output_amount=quote.output_amount,
            slippage_bps=quote.slippage_bps,
            source_chain_id=chain_id,
            dest_chain_id=self.dest_chain_id,
            tx_hash=tx_hash or None,
        )
        logger.info(
            f"Bridge #{transaction.id}: {quote.input_amount} {quote.input_token} "
            f"from chain {chain_id} -> {quote.output_amount} {quote.output_token} "
            f"for {transaction.depositor}"
        )
        return BridgeSubmission(transaction=transaction, estimated_time=quote.estimated_time)

    async def transactions_for(self, address: str) -> list[BridgeTransaction]:
        """All transactions of a depositor address (case-insensitive)."""
        return await self.ledger.list_by_depositor(address.lower())

    async def pending(self) -> list[BridgeTransaction]:
        """All transactions awaiting fulfillment."""
        return await self.ledger.list_pending()

    async def fulfill(self, transaction_id: int, mega_tx_hash: str | None) -> BridgeTransaction:
        """Mark a pending transaction completed.

        :raises TransactionNotFound: If the id is unknown or not pending.
        """
        return await self._transition(
            transaction_id, TransactionStatus.COMPLETED, mega_tx_hash or None
        )

    async def reject(self, transaction_id: int) -> BridgeTransaction:
        """Mark a pending transaction rejected.

        :raises TransactionNotFound: If the id is unknown or not pending.
        """
        return await self._transition(transaction_id, TransactionStatus.REJECTED)

    async def _transition(
        self,
        transaction_id: int,
        status: TransactionStatus,
        completed_tx_hash: str | None = None,
    ) -> BridgeTransaction:
        updated = await self.ledger.update_status(transaction_id, status, completed_tx_hash)
        if updated is None:
            raise TransactionNotFound(transaction_id)
        logger.info(f"Bridge #{transaction_id} {status.value}")
        return updated
