"""
Common utilities for the storefront.

Modules:
- checksum: 32-bit rolling fingerprint for stored payloads
- obfuscation: reversible payload transforms (base64, opt-in Fernet)
- validation: checkout form validation
- order_api: order-submission HTTP client
"""

__all__ = [
    "checksum",
    "obfuscation",
    "validation",
    "order_api",
]
