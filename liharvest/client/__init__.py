"""Remote scraping API client."""

from liharvest.client.apify import ApifyClient
from liharvest.client.retry import RetryPolicy, is_transient

__all__ = ["ApifyClient", "RetryPolicy", "is_transient"]
