"""Bridge submission, transaction history and admin endpoints."""

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ..src.BridgeService import TransactionNotFound
from ..src.QuoteCalculator import InvalidAmount
from .responses import error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

NOT_FOUND = "Transaction not found"


class BridgeRequest(BaseModel):
    depositor: str | None = None
    amount: str | float | int | None = None
    txHash: str | None = None
    sourceChainId: int | str | None = None


class FulfillRequest(BaseModel):
    megaTxHash: str | None = None


def parse_transaction_id(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


@router.post("/bridge")
async def post_bridge(request: Request, req: BridgeRequest):
    """Record a deposit as a pending bridge, re-quoted server-side."""
    if not req.depositor or req.amount is None or req.amount == "":
        return error_response(400, "Depositor and amount are required")

    try:
        submission = await request.app.state.bridge_service.submit(
            depositor=req.depositor,
            amount=req.amount,
            tx_hash=req.txHash,
            source_chain_id=req.sourceChainId,
        )
    except InvalidAmount:
        return error_response(400, "Invalid amount")
    except ValueError as e:
        return error_response(400, str(e))
    except Exception as e:
        logger.error(f"Bridge error: {e!r}")
        return error_response(500, "Failed to create bridge transaction")
    return submission.to_dict()


@router.get("/transactions/{address}")
async def get_transactions_for(request: Request, address: str):
    """All bridge transactions of a depositor."""
    try:
        transactions = await request.app.state.bridge_service.transactions_for(address)
    except Exception as e:
        logger.error(f"Failed to fetch transactions for {address}: {e!r}")
        return error_response(500, "Failed to fetch transactions")
    return [t.to_dict() for t in transactions]


@router.get("/transactions")
async def get_pending_transactions(request: Request):
    """All pending bridge transactions."""
    try:
        transactions = await request.app.state.bridge_service.pending()
    except Exception as e:
        logger.error(f"Failed to fetch pending transactions: {e!r}")
        return error_response(500, "Failed to fetch transactions")
    return [t.to_dict() for t in transactions]


@router.post("/admin/fulfill/{transaction_id}")
async def post_fulfill(
    request: Request,
    transaction_id: str,
    req: FulfillRequest | None = None,
):
    tx_id = parse_transaction_id(transaction_id)
    if tx_id is None:
        return error_response(404, NOT_FOUND)
    try:
        transaction = await request.app.state.bridge_service.fulfill(
            tx_id, req.megaTxHash if req else None
        )
    except TransactionNotFound:
        return error_response(404, NOT_FOUND)
    except Exception as e:
        logger.error(f"Failed to fulfill #{transaction_id}: {e!r}")
        return error_response(500, "Failed to fulfill transaction")
    return transaction.to_dict()


@router.post("/admin/reject/{transaction_id}")
async def post_reject(request: Request, transaction_id: str):
    tx_id = parse_transaction_id(transaction_id)
    if tx_id is None:
        return error_response(404, NOT_FOUND)
    try:
        transaction = await request.app.state.bridge_service.reject(tx_id)
    except TransactionNotFound:
        return error_response(404, NOT_FOUND)
    except Exception as e:
        logger.error(f"Failed to reject #{transaction_id}: {e!r}")
        return error_response(500, "Failed to reject transaction")
    return transaction.to_dict()
