"""Roogle: a rewriting forward proxy."""

from .main import create_app

__all__ = ["create_app"]
