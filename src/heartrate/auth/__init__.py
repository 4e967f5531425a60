"""Whoop session handling.

Modules:
    credential    - Extract a Credential from login cookies (pure)
    session       - Single-slot credential cache with a 5-minute safety margin
    browser_login - Playwright-driven web login (LoginProvider implementation)
"""

from src.heartrate.auth.credential import extract_credential
from src.heartrate.auth.session import SessionCache

__all__ = ["SessionCache", "extract_credential"]
