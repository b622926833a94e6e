"""
Token authentication used by the dispatcher front-end.

Kept apart from the views so that DRF can import it while settings load
without pulling in models through circular imports.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token auth with the ``Token`` keyword; a stable settings import path."""

    keyword = 'Token'
