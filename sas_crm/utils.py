from __future__ import annotations

import functools
import re
import threading
import uuid
from collections.abc import Callable
from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

Currency = Literal["BRL", "USD"]

EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

_NBSP = "\u00a0"
_CURRENCY_FORMATS: dict[str, tuple[str, str, str, str]] = {
    # symbol, separator after symbol, thousands separator, decimal separator
    "BRL": ("R$", _NBSP, ".", ","),
    "USD": ("$", "", ",", "."),
}


def generate_id() -> str:
    return str(uuid.uuid4())


def format_date(value: datetime | date | str) -> str:
    """Normalize a date-like value to ``YYYY-MM-DDTHH:MM:SS.sssZ`` in UTC.

    Naive values are read as UTC. Malformed strings raise ``ValueError``.
    """
    if isinstance(value, str):
        parsed: datetime | date = datetime.fromisoformat(value.strip())
    else:
        parsed = value

    if not isinstance(parsed, datetime):
        parsed = datetime.combine(parsed, time.min)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_currency(value: int | float | Decimal, currency: Currency) -> str:
    try:
        symbol, spacer, thousands, decimal_point = _CURRENCY_FORMATS[currency]
    except KeyError:
        raise ValueError(f"unsupported currency: {currency}") from None

    exact = Decimal(str(value))
    # half away from zero; the sign survives amounts that round to zero
    amount = exact.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if exact < 0 else ""
    digits = f"{abs(amount):,.2f}".replace(",", "X").replace(".", decimal_point).replace("X", thousands)
    return f"{sign}{symbol}{spacer}{digits}"


def get_initials(first_name: str | None, last_name: str | None) -> str:
    first = first_name[:1].upper() if first_name else ""
    last = last_name[:1].upper() if last_name else ""
    return f"{first}{last}"


def is_valid_email(email: str) -> bool:
    return EMAIL_RE.fullmatch(email) is not None


def truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[:length] + "..."


class Debounced:
    """Callable wrapper that collapses bursts of calls into one deferred call.

    Each call cancels the pending timer and schedules a new one; the wrapped
    function runs once, with the latest arguments, after ``wait`` seconds
    without further calls.
    """

    def __init__(self, func: Callable[..., Any], wait: float) -> None:
        self.func = func
        self.wait = wait
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._pending: tuple[tuple[Any, ...], dict[str, Any]] | None = None
        functools.update_wrapper(self, func)

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._pending = (args, kwargs)
            self._timer = threading.Timer(self.wait, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = None
            self._pending = None

    def flush(self) -> None:
        """Run the pending call now, if any."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            generation = self._generation
        self._fire(generation)

    def _fire(self, generation: int) -> None:
        with self._lock:
            # a newer call superseded this timer
            if generation != self._generation or self._pending is None:
                return
            args, kwargs = self._pending
            self._pending = None
            self._timer = None
        self.func(*args, **kwargs)


def debounce(wait_ms: float) -> Callable[[Callable[..., Any]], Debounced]:
    def decorator(func: Callable[..., Any]) -> Debounced:
        return Debounced(func, wait_ms / 1000.0)

    return decorator
