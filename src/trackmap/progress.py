"""Progress reporting and cooperative cancellation for long imports."""

from typing import Callable

from trackmap.errors import ImportCancelled

# (offset, total) -> keep going
ProgressCallback = Callable[[int, int], bool]


class ProgressReporter:
    """Forwards byte offsets to a callback, once per distinct offset.

    Raises ImportCancelled as soon as the callback returns False.
    """

    def __init__(self, callback: ProgressCallback | None, total: int = 0):
        self.callback = callback
        self.total = total
        self.last_offset: int | None = None

    def report(self, offset: int) -> None:
        if self.callback is None or offset == self.last_offset:
            return
        self.last_offset = offset
        if not self.callback(offset, self.total):
            raise ImportCancelled(f"Import cancelled at offset {offset} of {self.total}")
