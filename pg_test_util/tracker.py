"""
==================================================
Ownership tracking for created databases and roles.
==================================================

ResourceTracker records the databases and roles a PgTestUtil instance
created itself, as opposed to ones that already existed on the server.
Destructive operations consult it before acting: by default an instance
refuses to drop anything it did not create.

A name enters the tracker only after its CREATE statement succeeded and
leaves it only after its DROP statement succeeded; a failed create never
adds and a failed drop never removes.

run_batch() executes independent teardown operations concurrently and
reports every failure together once all of them had an attempt.

Example:
    >>> tracker = ResourceTracker()
    >>> tracker.track_database('test-db-1')
    >>> tracker.ensure_database_owned('postgres', drop_only_created=True)
    Traceback (most recent call last):
    ...
    core.exceptions.OwnershipError: 'postgres' database is not created by this instance...
"""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Sequence, Tuple

from core.exceptions import BatchError, OwnershipError, PgTestUtilError
from core.logger import get_logger

logger = get_logger(__name__)

MAX_BATCH_WORKERS = 8


class ResourceTracker:
    """Databases and roles created by one PgTestUtil instance.

    Databases keep creation order and appear at most once. Roles map to the
    password used when they were created.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._databases: List[str] = []
        self._users: Dict[str, str] = {}

    @property
    def databases(self) -> List[str]:
        """Snapshot of tracked database names in creation order."""
        with self._lock:
            return list(self._databases)

    @property
    def users(self) -> Dict[str, str]:
        """Snapshot of tracked role names and their passwords."""
        with self._lock:
            return dict(self._users)

    def is_database_tracked(self, name: str) -> bool:
        with self._lock:
            return name in self._databases

    def is_user_tracked(self, name: str) -> bool:
        with self._lock:
            return name in self._users

    def track_database(self, name: str) -> None:
        with self._lock:
            if name not in self._databases:
                self._databases.append(name)

    def untrack_database(self, name: str) -> None:
        with self._lock:
            if name in self._databases:
                self._databases.remove(name)

    def track_user(self, name: str, password: str) -> None:
        with self._lock:
            self._users[name] = password

    def untrack_user(self, name: str) -> None:
        with self._lock:
            self._users.pop(name, None)

    def ensure_database_owned(self, name: str, drop_only_created: bool) -> None:
        """Raise OwnershipError unless the check is disabled or the database is tracked."""
        if drop_only_created and not self.is_database_tracked(name):
            raise OwnershipError(
                f"'{name}' database is not created by this instance. "
                f"Set \"drop_only_created\" to False to force.",
                resource=name,
                operation='drop database'
            )

    def ensure_user_owned(self, name: str, drop_only_created: bool) -> None:
        """Raise OwnershipError unless the check is disabled or the role is tracked."""
        if drop_only_created and not self.is_user_tracked(name):
            raise OwnershipError(
                f"'{name}' user is not created by this instance. "
                f"Set \"drop_only_created\" to False to force.",
                resource=name,
                operation='drop user'
            )


def run_batch(label: str, tasks: Sequence[Tuple[str, Callable[[], Any]]]) -> None:
    """Run independent operations concurrently and aggregate their failures.

    Every task is attempted even if others fail. Completed operations are
    not rolled back.

    Args:
        label: Description of the batch, e.g. 'drop all databases'
        tasks: (name, callable) pairs

    Raises:
        BatchError: If one or more tasks raised a PgTestUtilError; nested
            BatchErrors are flattened into its errors list
    """
    if not tasks:
        return

    errors: List[BaseException] = []
    with ThreadPoolExecutor(max_workers=min(len(tasks), MAX_BATCH_WORKERS)) as executor:
        futures = {executor.submit(task): name for name, task in tasks}
        for future in as_completed(futures):
            try:
                future.result()
            except BatchError as e:
                errors.extend(e.errors)
            except PgTestUtilError as e:
                logger.error(f"❌ {label}: '{futures[future]}' failed: {e}")
                errors.append(e)

    if errors:
        raise BatchError(
            f"{len(errors)} operation(s) failed while trying to {label}: "
            + "; ".join(str(error) for error in errors),
            errors,
            operation=label
        )
