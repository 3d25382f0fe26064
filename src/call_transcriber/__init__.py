"""Webhook service that transcribes call recordings into Zoho CRM records."""

__version__ = "0.1.0"
