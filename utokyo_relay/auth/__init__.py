"""
Authentication Package

This package handles Google sign-in and the signed credentials cookie.

Key responsibilities:
- OAuth login redirect and callback handling
- Restricting sessions to accounts of the institutional domain
- Signing the credential payload and verifying it on later requests

Modules:
- routes: Public endpoints (/, /me, /login, /auth)
- oauth: Google token exchange and profile lookup
- utils: Identity extraction from the returned email addresses
- signer: HMAC signing of the credential payload
- session: Cookie storage and verification

The authentication flow:
1. Client opens /login and is redirected to Google
2. User authenticates with an institutional Google account
3. Google redirects back to /auth with an authorization code
4. Relay exchanges the code, extracts the account ID, signs the payload
5. Client presents the cookie pair on subsequent requests
"""

from .routes import auth_router

__all__ = [
    "auth_router",
]
