"""Filter predicate - the single source of truth for server queries and live matching."""

import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone

from ..api.transactions_api import WhaleTransaction, resolved_amount, resolved_market_cap
from ..errors import InvalidFilterError

HOTNESS_BUCKETS = {
    "high": (8, 10),
    "medium": (5, 7),
    "low": (1, 4),
}

TRANSACTION_TYPES = ("buy", "sell", "all")
SEARCH_TYPES = ("coin", "whale", "all")

_AMOUNT_STRIP = re.compile(r"[>$,\s]")
_SUFFIXES = {"K": 1_000, "M": 1_000_000, "B": 1_000_000_000}

# Persisted/JSON key for each predicate attribute
_JSON_KEYS = {
    "search_query": "searchQuery",
    "search_type": "searchType",
    "hotness": "hotness",
    "transaction_type": "transactionType",
    "tags": "tags",
    "amount": "amount",
    "age_min": "ageMin",
    "age_max": "ageMax",
    "market_cap_min": "marketCapMin",
    "market_cap_max": "marketCapMax",
}


def parse_amount(text: str) -> float:
    """Parse an amount threshold such as ``">$1,000"``."""
    cleaned = _AMOUNT_STRIP.sub("", str(text))
    try:
        value = float(cleaned)
    except ValueError:
        raise InvalidFilterError(f"Invalid amount: {text!r}") from None
    if value != value or value < 0:  # NaN or negative
        raise InvalidFilterError(f"Invalid amount: {text!r}")
    return value


def parse_market_cap(text) -> float:
    """Parse a market cap entry (``"250K"``, ``"1.5M"``, ``"$30,000"``) into raw USD."""
    if isinstance(text, (int, float)):
        value = float(text)
    else:
        cleaned = _AMOUNT_STRIP.sub("", str(text)).upper()
        multiplier = 1
        if cleaned and cleaned[-1] in _SUFFIXES:
            multiplier = _SUFFIXES[cleaned[-1]]
            cleaned = cleaned[:-1]
        try:
            value = float(cleaned) * multiplier
        except ValueError:
            raise InvalidFilterError(f"Invalid market cap: {text!r}") from None
    if value != value or value < 0:
        raise InvalidFilterError(f"Invalid market cap: {text!r}")
    return value


def _parse_minutes(value, name: str) -> float | None:
    if value is None or value == "":
        return None
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        raise InvalidFilterError(f"Invalid {name}: {value!r}") from None
    if minutes != minutes or minutes < 0:
        raise InvalidFilterError(f"Invalid {name}: {value!r}")
    return minutes


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


@dataclass
class FilterPredicate:
    """
    The user's active filters. Every field is optional; unset fields are no-ops.

    Market cap bounds are raw USD and ages are minutes since the transaction.
    Values are validated on construction, so anything reaching matches()
    or the query serializer is well-formed.
    """

    search_query: str = ""
    search_type: str | None = None  # coin, whale or all
    hotness: str | None = None  # high, medium or low
    transaction_type: str | None = None  # buy, sell or all
    tags: list[str] = field(default_factory=list)
    amount: str | None = None  # e.g. "1000" or ">$1,000"
    age_min: float | None = None
    age_max: float | None = None
    market_cap_min: float | None = None
    market_cap_max: float | None = None

    def __post_init__(self):
        self.search_query = (self.search_query or "").strip()
        self.search_type = self.search_type or None
        self.hotness = self.hotness or None
        self.transaction_type = self.transaction_type or None
        if isinstance(self.tags, str):
            self.tags = [self.tags]
        self.tags = [str(tag).strip() for tag in (self.tags or []) if str(tag).strip()]
        self.amount = str(self.amount).strip() if self.amount not in (None, "") else None

        if self.search_type is not None and self.search_type not in SEARCH_TYPES:
            raise InvalidFilterError(f"Invalid search type: {self.search_type!r}")
        if self.hotness is not None and self.hotness not in HOTNESS_BUCKETS:
            raise InvalidFilterError(f"Invalid hotness bucket: {self.hotness!r}")
        if (
            self.transaction_type is not None
            and self.transaction_type not in TRANSACTION_TYPES
        ):
            raise InvalidFilterError(
                f"Invalid transaction type: {self.transaction_type!r}"
            )
        if self.amount is not None:
            parse_amount(self.amount)

        self.age_min = _parse_minutes(self.age_min, "ageMin")
        self.age_max = _parse_minutes(self.age_max, "ageMax")
        if self.market_cap_min not in (None, ""):
            self.market_cap_min = parse_market_cap(self.market_cap_min)
        else:
            self.market_cap_min = None
        if self.market_cap_max not in (None, ""):
            self.market_cap_max = parse_market_cap(self.market_cap_max)
        else:
            self.market_cap_max = None

        if (
            self.age_min is not None
            and self.age_max is not None
            and self.age_min > self.age_max
        ):
            raise InvalidFilterError("ageMin is greater than ageMax")
        if (
            self.market_cap_min is not None
            and self.market_cap_max is not None
            and self.market_cap_min > self.market_cap_max
        ):
            raise InvalidFilterError("marketCapMin is greater than marketCapMax")

    @property
    def amount_threshold(self) -> float | None:
        return parse_amount(self.amount) if self.amount is not None else None

    @property
    def is_default(self) -> bool:
        return self == FilterPredicate()

    def to_query_params(self) -> dict[str, str]:
        """Serialize every set filter as a query parameter for the REST API."""
        params: dict[str, str] = {}

        if self.search_query:
            params["search"] = self.search_query
            if self.search_type:
                params["searchType"] = self.search_type
        if self.hotness:
            params["hotness"] = self.hotness
        if self.transaction_type and self.transaction_type != "all":
            params["type"] = self.transaction_type
        if self.amount is not None:
            params["amount"] = self.amount
        if self.tags:
            params["tags"] = ",".join(self.tags)
        if self.age_min is not None:
            params["ageMin"] = _format_number(self.age_min)
        if self.age_max is not None:
            params["ageMax"] = _format_number(self.age_max)
        if self.market_cap_min is not None:
            params["marketCapMin"] = _format_number(self.market_cap_min)
        if self.market_cap_max is not None:
            params["marketCapMax"] = _format_number(self.market_cap_max)

        return params

    def to_dict(self) -> dict:
        return {_JSON_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict) -> "FilterPredicate":
        """Build a predicate from its persisted form, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise InvalidFilterError(
                f"Expected a filter object, got {type(data).__name__}"
            )
        kwargs = {
            attr: data[key] for attr, key in _JSON_KEYS.items() if key in data
        }
        return cls(**kwargs)


def matches(
    tx: WhaleTransaction,
    predicate: FilterPredicate,
    now: datetime | None = None,
) -> bool:
    """
    Decide whether a transaction passes every active filter.

    Pure: the same arguments always give the same answer. Pass ``now`` to
    pin the clock used by the age filter.
    """
    if predicate.search_query:
        query = predicate.search_query.lower()
        if not any(query in (value or "").lower() for value in tx.search_fields()):
            return False

    if predicate.transaction_type in ("buy", "sell"):
        if tx.type != predicate.transaction_type:
            return False

    if predicate.hotness:
        low, high = HOTNESS_BUCKETS[predicate.hotness]
        if not low <= (tx.hotness_score or 0) <= high:
            return False

    if predicate.tags:
        labels = [label.lower() for label in tx.whale_labels]
        if not any(tag.lower() in label for tag in predicate.tags for label in labels):
            return False

    if predicate.amount is not None:
        if resolved_amount(tx) < predicate.amount_threshold:
            return False

    if predicate.age_min is not None or predicate.age_max is not None:
        now = now or datetime.now(timezone.utc)
        # A transaction without a timestamp has only just been seen
        age_minutes = (
            (now - tx.timestamp).total_seconds() / 60 if tx.timestamp else 0.0
        )
        if predicate.age_min is not None and age_minutes < predicate.age_min:
            return False
        if predicate.age_max is not None and age_minutes > predicate.age_max:
            return False

    if predicate.market_cap_min is not None or predicate.market_cap_max is not None:
        market_cap = resolved_market_cap(tx)
        if predicate.market_cap_min is not None and market_cap < predicate.market_cap_min:
            return False
        if predicate.market_cap_max is not None and market_cap > predicate.market_cap_max:
            return False

    return True
