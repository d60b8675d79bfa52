"""Host-side domain handler groups."""

from .assist import AnalysisHandler, ContextHandler, DictionaryHandler, StreamingRequestHandler
from .base import DomainHandler
from .configuration import ConfigurationHandler
from .ui import UIHandler

__all__ = [
    "AnalysisHandler",
    "ConfigurationHandler",
    "ContextHandler",
    "DictionaryHandler",
    "DomainHandler",
    "StreamingRequestHandler",
    "UIHandler",
]
