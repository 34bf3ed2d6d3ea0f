"""
Token authentication used by staff and admin clients.

A thin subclass of DRF's ``TokenAuthentication`` so that the settings module
has a stable import path and the keyword can be changed in one place.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    keyword = 'Token'
