"""Feed profiles - per-feed endpoints, live event names and storage keys."""

from dataclasses import dataclass


@dataclass(frozen=True)
class FeedProfile:
    """Constants that distinguish one transaction feed from another."""

    name: str
    api_path: str
    live_event: str  # push-stream event name
    live_type: str  # payload "type" this feed consumes
    storage_key: str


WHALE = FeedProfile(
    name="whale",
    api_path="/whale/whale-transactions",
    live_event="newTransaction",
    live_type="allWhaleTransactions",
    storage_key="whaleHomePageFilters",
)

KOL = FeedProfile(
    name="kol",
    api_path="/influencer/influencer-whale-transactions",
    live_event="newInfluencerWhaleTransaction",
    live_type="allInfluencerWhaleTransactions",
    storage_key="kolHomePageFilters",
)

PROFILES = {profile.name: profile for profile in (WHALE, KOL)}


def get_profile(name: str) -> FeedProfile:
    """Look up a feed profile by name."""
    try:
        return PROFILES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown feed profile: {name!r} (expected one of {sorted(PROFILES)})"
        ) from None
