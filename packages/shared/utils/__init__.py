"""Shared response helpers."""

from .api_response import ok_response

__all__ = ["ok_response"]
