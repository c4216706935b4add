"""
UTokyo credential relay.

Signs a domain-restricted Google identity into a cookie pair so that later
requests are authenticated without server-side session storage.
"""

__version__ = "1.0.0"
