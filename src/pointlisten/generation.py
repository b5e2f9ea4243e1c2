"""
Generation counter used to invalidate outdated callbacks.
"""


class Generation:
    """Monotonic counter. Callbacks capture ``value`` when scheduled and
    check ``is_current`` when they fire."""

    def __init__(self) -> None:
        self.value = 0

    def bump(self) -> int:
        self.value += 1
        return self.value

    def is_current(self, captured: int) -> bool:
        return captured == self.value
