"""Whale Feed - live whale transaction feed reconciliation."""
