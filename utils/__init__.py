"""Utility modules for Ops Monitor."""
from utils.logger import setup_logging
from utils.cache import TTLCache
from utils.http_client import HTTPClient, APIError
from utils.timeout import call_with_timeout
