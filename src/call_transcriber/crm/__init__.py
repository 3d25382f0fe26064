"""Zoho CRM access: credential cache, record client and update policy."""

from .client import ZohoApiError, ZohoAuthError, ZohoCrmClient, ZohoOAuthClient, crm_base_url
from .token_cache import BearerCredential, TokenCache
from .updater import CrmUpdater, UpdateAck

__all__ = [
    "BearerCredential",
    "TokenCache",
    "ZohoApiError",
    "ZohoAuthError",
    "ZohoCrmClient",
    "ZohoOAuthClient",
    "crm_base_url",
    "CrmUpdater",
    "UpdateAck",
]
