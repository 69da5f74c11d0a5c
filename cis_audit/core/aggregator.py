"""Aggregator Module - Collects one result record per check, safely across tasks."""

import logging
import threading
from typing import List, Set, Tuple

from .check import ResultRecord
from .exceptions import AggregatorNotSealedError, AggregatorSealedError, DuplicateResultError
from .identifiers import sort_by_id

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Multi-writer collection of ResultRecords.

    Appends are serialized by a lock so no record is ever lost or
    interleaved. Reading is only allowed after seal(), which the executor
    calls once every check has been joined.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[ResultRecord] = []
        self._ids: Set[str] = set()
        self._sealed = False

    def append(self, record: ResultRecord) -> None:
        """Add the result of one check.

        Raises:
            AggregatorSealedError: If the run has already been sealed
            DuplicateResultError: If this check already has a result
        """
        with self._lock:
            if self._sealed:
                raise AggregatorSealedError(
                    f"Result for {record.id} arrived after the run was sealed"
                )
            if record.id in self._ids:
                raise DuplicateResultError(f"Check {record.id} produced more than one result")
            self._ids.add(record.id)
            self._records.append(record)
        logger.debug("Recorded %s: %s", record.id, record.label)

    def seal(self) -> None:
        """Close the aggregator; no further records are accepted."""
        with self._lock:
            self._sealed = True

    @property
    def sealed(self) -> bool:
        with self._lock:
            return self._sealed

    def all(self) -> Tuple[ResultRecord, ...]:
        """Get every record in insertion order.

        Raises:
            AggregatorNotSealedError: If called before the run was sealed
        """
        with self._lock:
            if not self._sealed:
                raise AggregatorNotSealedError("Results read before all checks were joined")
            return tuple(self._records)

    def sorted(self) -> List[ResultRecord]:
        """Get every record in version-aware id order."""
        return sort_by_id(self.all())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
