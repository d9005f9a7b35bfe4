"""Transaction expander - splits buy-and-sell records into single-sided view-records."""

from dataclasses import replace
from datetime import datetime, timezone

from ..api.transactions_api import WhaleTransaction
from .predicate import parse_amount


def format_age(value: datetime | None, now: datetime | None = None) -> str:
    """
    Format the time since ``value`` using its largest whole unit.

    Returns "NA" for missing or future dates and "<1m" under a minute.
    """
    if value is None:
        return "NA"

    now = now or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    seconds = (now - value).total_seconds()
    if seconds < 0:
        return "NA"

    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)
    months = days // 30
    years = days // 365

    if years > 0:
        return f"{years}y"
    if months > 0:
        return f"{months}mo"
    if days > 0:
        return f"{days}d"
    if hours > 0:
        return f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return "<1m"


def _side_age(tx: WhaleTransaction, side: str) -> datetime | None:
    if side == "buy":
        return tx.token_out_age
    if side == "sell":
        return tx.token_in_age
    return tx.token_age


def expand(
    records: list[WhaleTransaction],
    amount_threshold: str | None = None,
    now: datetime | None = None,
) -> list[WhaleTransaction]:
    """
    Turn server records into view-records.

    A ``both`` record yields its buy leg then its sell leg, each only if
    present and at or above ``amount_threshold``; derived ids are
    ``<id>_buy`` and ``<id>_sell``. Other records pass through with a
    formatted ``age`` and a timestamp defaulted to ``now``; so does a
    ``both`` record with no leg flags. Input order is preserved.
    """
    now = now or datetime.now(timezone.utc)
    threshold = parse_amount(amount_threshold) if amount_threshold else None
    expanded: list[WhaleTransaction] = []

    for tx in records:
        timestamp = tx.timestamp or now

        if tx.type == "both" and (tx.has_buy_leg or tx.has_sell_leg):
            legs = (
                ("buy", tx.has_buy_leg, tx.buy_amount),
                ("sell", tx.has_sell_leg, tx.sell_amount),
            )
            for side, present, leg_amount in legs:
                if not present:
                    continue
                if threshold is not None and leg_amount < threshold:
                    continue
                expanded.append(
                    replace(
                        tx,
                        id=f"{tx.id}_{side}",
                        type=side,
                        age=format_age(_side_age(tx, side), now),
                        timestamp=timestamp,
                    )
                )
        else:
            expanded.append(
                replace(
                    tx,
                    age=format_age(_side_age(tx, tx.type), now),
                    timestamp=timestamp,
                )
            )

    return expanded
