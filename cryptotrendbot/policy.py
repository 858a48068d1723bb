"""Notification policies deciding which verdict changes are worth an alert."""

from typing import Callable, Dict, Optional

# (last verdict, new verdict) -> notify?
NotificationPolicy = Callable[[Optional[str], str], bool]

QUALIFYING_VERDICTS = frozenset({"strong buy", "strong sell"})


def strong_signal_change(last: Optional[str], new: str) -> bool:
    """Notify when the verdict changed to one of :data:`QUALIFYING_VERDICTS`."""
    return new != last and new in QUALIFYING_VERDICTS


def any_change(last: Optional[str], new: str) -> bool:
    """Notify on every verdict change, including the first one seen."""
    return new != last


POLICIES: Dict[str, NotificationPolicy] = {
    "strong": strong_signal_change,
    "any": any_change,
}


def get_policy(name: str) -> NotificationPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(
            f"unknown notification policy {name!r}, expected one of "
            f"{', '.join(sorted(POLICIES))}"
        ) from None
