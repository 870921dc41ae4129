"""Selective Fuchsia Trace Format sink for spans and events."""

from .config import FtfLayerConfig, load_config
from .core import FtfLayer
from .host import Registry, Span

__all__ = ["FtfLayer", "FtfLayerConfig", "Registry", "Span", "load_config"]
