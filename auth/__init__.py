"""
API key authentication for gateway requests.
"""

from auth.gate import ApiKeySettings, AuthDecision, AuthGate, redact_key

__all__ = [
    "ApiKeySettings",
    "AuthDecision",
    "AuthGate",
    "redact_key",
]
