"""DNS-01 challenge fulfillment."""

from acmer.challenge.base import ChallengeFulfillmentPlugin, Dns01Challenge
from acmer.challenge.record_store import RecordStorePlugin

__all__ = ["ChallengeFulfillmentPlugin", "Dns01Challenge", "RecordStorePlugin"]
