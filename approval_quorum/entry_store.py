"""
Transaction Ledger Entry Store Module

Keyed storage of TransactionEntry records on top of a StorageInterface
backend. Compare-and-swap is the only mutation primitive, so no approval
write can silently overwrite another.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional

from .errors import NotFoundError
from .logging_config import get_logger
from .models import TransactionEntry, TransactionKind, TransactionStatus
from .storage import StorageInterface


class TransactionEntryStore:
    """Owns the lifetime and storage of transaction entries"""

    def __init__(self, storage: StorageInterface, table_name: str = "approval_transactions"):
        self.storage = storage
        self.table_name = table_name
        self.logger = get_logger("quorum.store")

    def create(self, entry: TransactionEntry) -> TransactionEntry:
        """
        Store a new entry at version 0.

        Raises:
            DuplicateIdError: If an entry with the same id already exists
        """
        stored = replace(entry, version=0)
        self.storage.insert(self.table_name, stored.id, stored.to_dict())
        self.logger.debug(f"Created transaction entry {stored.id}")
        return stored

    def get(self, transaction_id: str) -> TransactionEntry:
        """
        Load the current entry.

        Raises:
            NotFoundError: If the id does not exist
        """
        data = self.storage.load(self.table_name, transaction_id)
        if data is None:
            raise NotFoundError(transaction_id)
        # The version inside the record is written atomically with the
        # backend's version counter, so one read gives a consistent pair.
        return TransactionEntry.from_dict(data)

    def compare_and_swap(self, transaction_id: str, expected_version: int,
                         new_entry: TransactionEntry) -> TransactionEntry:
        """
        Replace the entry only if the stored version equals expected_version.

        Returns:
            The stored entry with version expected_version + 1

        Raises:
            NotFoundError: If the id does not exist
            VersionConflictError: If the stored version has advanced
        """
        if new_entry.id != transaction_id:
            raise ValueError(
                f"Entry id {new_entry.id} does not match transaction id {transaction_id}"
            )
        stored = replace(
            new_entry,
            version=expected_version + 1,
            updated_at=datetime.now(timezone.utc)
        )
        self.storage.compare_and_swap(
            self.table_name, transaction_id, expected_version, stored.to_dict()
        )
        self.logger.debug(
            f"Transaction entry {transaction_id} advanced to version {stored.version}"
        )
        return stored

    def exists(self, transaction_id: str) -> bool:
        return self.storage.exists(self.table_name, transaction_id)

    def list_entries(self, status: Optional[TransactionStatus] = None,
                     kind: Optional[TransactionKind] = None) -> List[TransactionEntry]:
        """List entries, optionally filtered by status and kind, oldest first"""
        filters = {}
        if status:
            filters['status'] = status.value
        if kind:
            filters['kind'] = kind.value

        entries = [
            TransactionEntry.from_dict(data)
            for data in self.storage.find(self.table_name, filters)
        ]
        return sorted(entries, key=lambda e: e.created_at)

    def count(self) -> int:
        return self.storage.count(self.table_name)
