# ==============================================
# TableBatch
# ==============================================
#
# PURPOSE:
#   Pending rows for one destination table.
#
# CLASS: TableBatch
# -----------------
#   - append(row) -> bool      → True when the batch is due for a flush
#   - is_due() -> bool         → size or age threshold reached
#   - drain() -> list[MappedRow]
#
#   `lock` guards the pending rows. `flush_lock` is held by whoever
#   flushes this table, so flushes of one table never overlap and
#   rows reach the store in arrival order.
#
# ==============================================

import threading
import time
from typing import Callable, List, Optional

from hbase_connector.mapping.cell import MappedRow


class TableBatch:
    def __init__(
        self,
        table: str,
        batch_size: int,
        timeout_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.table = table
        self.batch_size = batch_size
        self.timeout_seconds = timeout_seconds
        self.lock = threading.Lock()
        self.flush_lock = threading.Lock()
        self._clock = clock
        self._rows: List[MappedRow] = []
        self._oldest: Optional[float] = None

    def append(self, row: MappedRow) -> bool:
        with self.lock:
            if not self._rows:
                self._oldest = self._clock()
            self._rows.append(row)
            return self._is_due_locked()

    def is_due(self) -> bool:
        with self.lock:
            return self._is_due_locked()

    def _is_due_locked(self) -> bool:
        if not self._rows:
            return False
        if len(self._rows) >= self.batch_size:
            return True
        return self._clock() - self._oldest >= self.timeout_seconds

    def drain(self) -> List[MappedRow]:
        with self.lock:
            rows, self._rows = self._rows, []
            self._oldest = None
            return rows

    def __len__(self) -> int:
        with self.lock:
            return len(self._rows)
