"""
Cart state for the storefront.

Modules:
- menu: static catalog and storefront limits
- manager: cart mutations persisted through the secure session store
- checkout: totals and order assembly
"""

__all__ = [
    "checkout",
    "manager",
    "menu",
]
