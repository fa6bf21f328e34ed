"""
Success-rate ranking of storage accounts.

Each account keeps a ring of time buckets with success / total counters.
The rank is a recency-weighted average of the per-bucket success rates, so
an account that failed a minute ago but has recovered climbs back quickly.

Accounts are grouped into tiers by rank (default 90 / 70 / 30 / 0 percent),
shuffled within a tier, and handed out best tier first.
"""

import logging
import random
import time
from typing import Callable, Dict, List, Tuple

from core.errors.exceptions import UnknownStorageAccountError

logger = logging.getLogger(__name__)

DEFAULT_NUMBER_OF_BUCKETS = 6
DEFAULT_BUCKET_DURATION_SECS = 10.0
DEFAULT_TIERS: Tuple[int, ...] = (90, 70, 30, 0)


class StorageAccountStats:
    """Success / total counters for one time bucket."""

    def __init__(self) -> None:
        self.success_count = 0
        self.total_count = 0

    def log_result(self, success: bool) -> None:
        self.total_count += 1
        if success:
            self.success_count += 1

    def reset(self) -> None:
        self.success_count = 0
        self.total_count = 0

    @property
    def success_rate(self) -> float:
        return self.success_count / self.total_count


class RankedStorageAccount:
    """
    One storage account and its rolling window of results.

    Attributes:
        account_name: Storage account name
        buckets: Ring of StorageAccountStats, one per bucket_duration
        current_bucket_index: Bucket receiving new results
        last_update_time: time_provider() value when the ring last advanced
    """

    def __init__(
        self,
        account_name: str,
        number_of_buckets: int = DEFAULT_NUMBER_OF_BUCKETS,
        bucket_duration: float = DEFAULT_BUCKET_DURATION_SECS,
        time_provider: Callable[[], float] = time.time,
    ):
        if number_of_buckets < 1:
            raise ValueError(f"number_of_buckets must be >= 1, got {number_of_buckets}")
        if bucket_duration <= 0:
            raise ValueError(f"bucket_duration must be > 0, got {bucket_duration}")

        self.account_name = account_name
        self.number_of_buckets = number_of_buckets
        self.bucket_duration = bucket_duration
        self.time_provider = time_provider
        self.buckets = [StorageAccountStats() for _ in range(number_of_buckets)]
        self.current_bucket_index = 0
        self.last_update_time = time_provider()

    def log_result(self, success: bool) -> None:
        self.current_bucket_index = self._adjust_for_time_passed()
        self.buckets[self.current_bucket_index].log_result(success)

    def get_rank(self) -> float:
        """
        Weighted mean success rate in [0, 1].

        Walking the ring from the oldest bucket to the current one, bucket i
        (1-based) gets weight i. Empty buckets are skipped; with no data at
        all the rank is 1.0.
        """
        rank = 0.0
        total_weight = 0

        for weight in range(1, self.number_of_buckets + 1):
            bucket = self.buckets[(self.current_bucket_index + weight) % self.number_of_buckets]
            if bucket.total_count == 0:
                continue
            rank += bucket.success_rate * weight
            total_weight += weight

        if total_weight == 0:
            return 1.0
        return rank / total_weight

    def _adjust_for_time_passed(self) -> int:
        """Advance past elapsed buckets, resetting each; at most one full ring."""
        now = self.time_provider()
        elapsed = now - self.last_update_time
        buckets_passed = 0

        if elapsed >= self.bucket_duration:
            self.last_update_time = now
            buckets_passed = min(int(elapsed / self.bucket_duration), self.number_of_buckets)
            for offset in range(1, buckets_passed + 1):
                self.buckets[(self.current_bucket_index + offset) % self.number_of_buckets].reset()

        return (self.current_bucket_index + buckets_passed) % self.number_of_buckets

    def __repr__(self) -> str:
        return f"RankedStorageAccount({self.account_name!r}, rank={self.get_rank():.2f})"


class RankedStorageAccountSet:
    """Registry of ranked accounts, owned by one ResourceManager."""

    def __init__(
        self,
        number_of_buckets: int = DEFAULT_NUMBER_OF_BUCKETS,
        bucket_duration: float = DEFAULT_BUCKET_DURATION_SECS,
        tiers: Tuple[int, ...] = DEFAULT_TIERS,
        time_provider: Callable[[], float] = time.time,
    ):
        self.accounts: Dict[str, RankedStorageAccount] = {}
        self.number_of_buckets = number_of_buckets
        self.bucket_duration = bucket_duration
        self.tiers = tiers
        self.time_provider = time_provider

    def register_storage_account(self, account_name: str) -> None:
        if account_name in self.accounts:
            return
        self.accounts[account_name] = RankedStorageAccount(
            account_name, self.number_of_buckets, self.bucket_duration, self.time_provider
        )
        logger.debug("Registered storage account", extra={"account_name": account_name})

    def log_result_to_account(self, account_name: str, success: bool) -> None:
        self.get_storage_account(account_name).log_result(success)

    def get_storage_account(self, account_name: str) -> RankedStorageAccount:
        account = self.accounts.get(account_name)
        if account is None:
            raise UnknownStorageAccountError(account_name)
        return account

    def get_ranked_shuffled_accounts(self) -> List[RankedStorageAccount]:
        accounts_by_tier: List[List[RankedStorageAccount]] = [[] for _ in self.tiers]

        for account in self.accounts.values():
            rank_percentage = account.get_rank() * 100.0
            for tier_index, threshold in enumerate(self.tiers):
                if rank_percentage >= threshold:
                    accounts_by_tier[tier_index].append(account)
                    break

        for tier in accounts_by_tier:
            random.shuffle(tier)

        return [account for tier in accounts_by_tier for account in tier]

    def __len__(self) -> int:
        return len(self.accounts)

    def __contains__(self, account_name: object) -> bool:
        return account_name in self.accounts


__all__ = [
    "StorageAccountStats",
    "RankedStorageAccount",
    "RankedStorageAccountSet",
    "DEFAULT_NUMBER_OF_BUCKETS",
    "DEFAULT_BUCKET_DURATION_SECS",
    "DEFAULT_TIERS",
]
