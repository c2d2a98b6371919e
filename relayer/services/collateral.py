"""
Collateral Service - batched collateral snapshots from the balance checker.

The oracle answers, for each (holder, token) pair, the minimum of the
holder's token balance and its allowance to the exchange proxy. Calls are
limited in length, so the pair universe is split into batches that run
concurrently and are stitched back together in input order.
"""

import asyncio
import time
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from relayer.core.fillability import CollateralKey, CollateralLedger
from relayer.core.order import Order
from relayer.utils.exceptions import BaseRelayerException, CollateralOracleException
from relayer.utils.logger import get_logger


class CollateralOracle(Protocol):
    """Read-only view of on-chain balances and allowances."""

    max_batch_size: int

    async def min_available(
        self,
        holders: Sequence[str],
        tokens: Sequence[str],
        spender: str,
    ) -> List[int]:
        """Return min(balance, allowance) for each (holders[i], tokens[i])."""
        ...


class InMemoryCollateralOracle:
    """
    Collateral oracle backed by dictionaries.

    Used for local runs and tests; also records every batch it serves so
    batching behaviour can be inspected.
    """

    def __init__(
        self,
        balances: Optional[Dict[CollateralKey, int]] = None,
        allowances: Optional[Dict[CollateralKey, int]] = None,
        max_batch_size: int = 400,
    ):
        self.balances: Dict[CollateralKey, int] = {
            CollateralLedger.key(*k): v for k, v in (balances or {}).items()
        }
        # Missing allowance means "unlimited" so balances alone can drive tests
        self.allowances: Dict[CollateralKey, int] = {
            CollateralLedger.key(*k): v for k, v in (allowances or {}).items()
        }
        self.max_batch_size = max_batch_size
        self.calls: List[Tuple[List[str], List[str], str]] = []

    def set_balance(self, holder: str, token: str, amount: int) -> None:
        self.balances[CollateralLedger.key(holder, token)] = amount

    def set_allowance(self, holder: str, token: str, amount: int) -> None:
        self.allowances[CollateralLedger.key(holder, token)] = amount

    async def min_available(
        self,
        holders: Sequence[str],
        tokens: Sequence[str],
        spender: str,
    ) -> List[int]:
        if len(holders) != len(tokens):
            raise CollateralOracleException(
                "holders and tokens must have the same length",
                details={"holders": len(holders), "tokens": len(tokens)}
            )
        if len(holders) > self.max_batch_size:
            raise CollateralOracleException(
                f"Batch of {len(holders)} exceeds limit {self.max_batch_size}",
                details={"batch_size": len(holders)}
            )

        self.calls.append((list(holders), list(tokens), spender))
        result = []
        for holder, token in zip(holders, tokens):
            key = CollateralLedger.key(holder, token)
            balance = self.balances.get(key, 0)
            allowance = self.allowances.get(key, balance)
            result.append(min(balance, allowance))
        return result


def chunk(items: Sequence, size: int) -> List[Sequence]:
    """Split a sequence into consecutive slices of at most size items."""
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")
    return [items[i:i + size] for i in range(0, len(items), size)]


def collect_collateral_pairs(orders: Iterable[Order]) -> List[CollateralKey]:
    """Unique (maker, maker_token) pairs in first-seen order."""
    seen: Dict[CollateralKey, None] = {}
    for order in orders:
        seen.setdefault(CollateralLedger.key(order.maker, order.maker_token), None)
    return list(seen)


async def fetch_collateral_ledger(
    oracle: CollateralOracle,
    pairs: Sequence[CollateralKey],
    spender: str,
    batch_size: Optional[int] = None,
) -> CollateralLedger:
    """
    Snapshot collateral for every pair into a fresh ledger.

    Batches are requested concurrently; any failed or malformed batch fails
    the whole snapshot.

    Args:
        oracle: Collateral oracle to query
        pairs: (holder, token) pairs, typically from collect_collateral_pairs
        spender: Address whose allowance counts
        batch_size: Maximum pairs per call; defaults to the oracle's limit

    Returns:
        CollateralLedger keyed by pair

    Raises:
        CollateralOracleException: If any batch fails or has the wrong length
    """
    limit = min(batch_size or oracle.max_batch_size, oracle.max_batch_size)
    batches = chunk(list(pairs), limit)
    start_time = time.time()

    async def run_batch(batch: Sequence[CollateralKey]) -> List[int]:
        holders = [holder for holder, _ in batch]
        tokens = [token for _, token in batch]
        return await oracle.min_available(holders, tokens, spender)

    try:
        results = await asyncio.gather(*(run_batch(b) for b in batches))
    except BaseRelayerException:
        raise
    except Exception as e:
        get_logger().log_error(f"Collateral oracle call failed: {str(e)}", e, pairs=len(pairs))
        raise CollateralOracleException(
            f"Collateral oracle call failed: {str(e)}",
            details={"pairs": len(pairs), "batches": len(batches)}
        ) from e

    ledger = CollateralLedger()
    for batch, amounts in zip(batches, results):
        if len(amounts) != len(batch):
            raise CollateralOracleException(
                f"Oracle returned {len(amounts)} values for {len(batch)} pairs",
                details={"expected": len(batch), "received": len(amounts)}
            )
        for (holder, token), amount in zip(batch, amounts):
            if amount < 0:
                raise CollateralOracleException(
                    f"Oracle returned negative collateral {amount} for {holder}/{token}",
                    details={"holder": holder, "token": token, "amount": amount}
                )
            ledger.set(holder, token, int(amount))

    get_logger().log_collateral_fetch(
        len(pairs),
        len(batches),
        execution_time_ms=(time.time() - start_time) * 1000,
    )
    return ledger
