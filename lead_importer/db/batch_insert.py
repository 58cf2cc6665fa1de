from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""DB batch insert helper.

One call = one INSERT ... VALUES statement built by
psycopg2.extras.execute_values. When ``returning`` columns are given, the
returned tuples come back in the same order as ``rows``, which the lead
persister relies on to correlate new ids with source rows. ``page_size`` must
be at least the number of rows for a single round trip; callers chunk above
this function.

Transaction boundaries (BEGIN / COMMIT / ROLLBACK) belong to the caller.
"""


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Metrics data for a single batch insert operation."""
    batch_size: int  # Number of rows in this batch
    elapsed_seconds: float  # Time spent on execute_values call
    start_time: float  # Start timestamp (time.time())
    end_time: float  # End timestamp (time.time())


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: Sequence[str] | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (trusted identifier)
    columns: insert columns
    rows: row value sequences, same order as ``columns``
    returning: columns for a RETURNING clause (e.g. ["id"])
    page_size: execute_values page size
    metrics_callback: receives a BatchMetrics after the statement ran.
        Not invoked when ``rows`` is empty (the function returns early).
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(f'"{c}"' for c in columns)
    base_sql = f'INSERT INTO "{table}" ({cols_sql}) VALUES %s'
    if returning:
        base_sql += " RETURNING " + ",".join(f'"{c}"' for c in returning)

    start_time = time.time()
    returned = None
    try:
        if returning:
            returned = execute_values(
                cursor, base_sql, rows_list, page_size=max(page_size, len(rows_list)), fetch=True
            )
        else:
            execute_values(cursor, base_sql, rows_list, page_size=page_size)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics = BatchMetrics(
                batch_size=len(rows_list),
                elapsed_seconds=end_time - start_time,
                start_time=start_time,
                end_time=end_time,
            )
            metrics_callback(metrics)

    if returning:
        returned = [tuple(r) for r in (returned or [])]
    return InsertResult(inserted_rows=len(rows_list), returned_values=returned)
