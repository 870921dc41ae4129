"""Span registry that drives layers through span and event callbacks."""

from .registry import Layer, Registry, Span

__all__ = ["Layer", "Registry", "Span"]
