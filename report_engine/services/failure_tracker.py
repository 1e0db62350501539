"""In-memory consecutive failure counters for scheduled reports.

Counters live for the lifetime of the engine only. A process restart gives
every schedule a fresh failure budget.
"""


class FailureTracker:
    """Counts consecutive failed attempts per schedule id.

    A schedule whose count has reached max_failures is skipped for one cycle;
    the entry is then dropped, so the schedule is attempted again the next
    time it is due.
    """

    def __init__(self, max_failures: int = 3) -> None:
        self.max_failures = max_failures
        self._failures: dict[int, int] = {}

    def count(self, schedule_id: int) -> int:
        return self._failures.get(schedule_id, 0)

    def has_reached_ceiling(self, schedule_id: int) -> bool:
        return self.count(schedule_id) >= self.max_failures

    def record_failure(self, schedule_id: int) -> int:
        """Increment the counter and return the new count."""
        count = self.count(schedule_id) + 1
        self._failures[schedule_id] = count
        return count

    def reset(self, schedule_id: int) -> None:
        self._failures.pop(schedule_id, None)

    def clear(self) -> None:
        self._failures.clear()

    def snapshot(self) -> dict[int, int]:
        return dict(self._failures)

    def __contains__(self, schedule_id: object) -> bool:
        return schedule_id in self._failures

    def __len__(self) -> int:
        return len(self._failures)
