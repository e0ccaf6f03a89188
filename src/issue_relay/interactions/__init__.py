"""Inbound chat interactions: signed callbacks that act on tracker records."""

from .tokens import ActionToken, encode_token, parse_token

__all__ = ["ActionToken", "encode_token", "parse_token"]
