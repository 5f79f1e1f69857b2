"""External property-listing service client and appointment enrichment."""

from .easybroker import EasyBrokerClient
from .enrichment import ListingEnricher

__all__ = ["EasyBrokerClient", "ListingEnricher"]
