"""Telephony provider lookups."""

from .knowlarity import KnowlarityClient, extract_secured_url
from .tree import find_value, scan_serialized

__all__ = ["KnowlarityClient", "extract_secured_url", "find_value", "scan_serialized"]
