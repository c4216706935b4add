"""
Identity extraction utilities.

This module turns the identifiers a provider returns for a user into the
credential payload stored in the session cookie:
- Filtering identifiers by type and institutional domain
- Extracting the 10-digit account ID from the local part
- Building the canonical payload from the first qualifying identifier

Everything here is pure. A profile without any qualifying identifier yields
None; raising IneligibleIdentityError is left to the callback route.
"""

import re
from functools import lru_cache
from typing import Any, Iterable, List, Optional, Pattern

from utokyo_relay.config import DEFAULT_ALLOWED_DOMAIN
from utokyo_relay.models import CredentialPayload


# =============================================================================
# Domain Pattern
# =============================================================================

@lru_cache(maxsize=8)
def account_pattern(domain: str = DEFAULT_ALLOWED_DOMAIN) -> Pattern[str]:
    """
    Compile the pattern an institutional identifier must match.

    The local part must be exactly ten digits (the account ID) and the
    domain must equal ``domain``. The domain is compared case-insensitively.

    Args:
        domain: Institutional email domain, e.g. "g.ecc.u-tokyo.ac.jp"

    Returns:
        Compiled pattern with the account ID in group 1
    """
    return re.compile(r"([0-9]{10})@(?i:" + re.escape(domain) + r")")


def string_identifiers(identifiers: Iterable[Any]) -> List[str]:
    """
    Keep the string-typed identifiers, in provider order, without duplicates.
    """
    seen = set()
    result = []
    for identifier in identifiers or []:
        if isinstance(identifier, str) and identifier not in seen:
            seen.add(identifier)
            result.append(identifier)
    return result


def extract_account_ids(
    identifiers: Iterable[Any],
    domain: str = DEFAULT_ALLOWED_DOMAIN,
) -> List[str]:
    """
    Return the account IDs of all qualifying identifiers, in provider order.

    Non-string and non-matching identifiers are skipped silently.

    Example:
        >>> extract_account_ids(["1234567890@g.ecc.u-tokyo.ac.jp", "alice@gmail.com"])
        ['1234567890']
    """
    pattern = account_pattern(domain)
    account_ids = []
    for identifier in string_identifiers(identifiers):
        match = pattern.fullmatch(identifier)
        if match:
            account_ids.append(match.group(1))
    return account_ids


def build_credentials(
    identifiers: Iterable[Any],
    domain: str = DEFAULT_ALLOWED_DOMAIN,
) -> Optional[CredentialPayload]:
    """
    Build the credential payload for a provider profile.

    The first qualifying identifier becomes the canonical ID; every string
    identifier, qualifying or not, is kept as an associated identifier.

    Args:
        identifiers: Email-like identifiers as returned by the provider
        domain: Institutional domain the canonical ID must belong to

    Returns:
        CredentialPayload, or None when no identifier qualifies
    """
    identifiers = list(identifiers or [])
    account_ids = extract_account_ids(identifiers, domain)
    if not account_ids:
        return None

    return CredentialPayload(
        id=account_ids[0],
        emails=string_identifiers(identifiers),
    )
