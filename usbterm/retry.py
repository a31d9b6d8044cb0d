from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


class RetriesExhausted(Exception):
    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempts: {last_error}")


@dataclass
class RetryPolicy:
    """Fixed-delay polling.

    ``attempts=None`` retries forever; there is no cancellation hook, callers
    that need one must make ``fn`` itself give up.
    """

    delay_s: float = 0.1
    attempts: Optional[int] = None
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def run(self, fn: Callable[[], T]) -> T:
        n = 0
        while True:
            n += 1
            try:
                return fn()
            except self.retry_on as e:
                if self.attempts is not None and n >= self.attempts:
                    raise RetriesExhausted(n, e) from e
            self.sleep(self.delay_s)
