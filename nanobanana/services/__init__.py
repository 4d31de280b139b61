from .backend import BackendInvoker
from .cache import ResultCache, make_cache_key
from .classifier import DEFAULT_RULES, ClassificationRule, OutputClassifier
from .errors import (
    BackendError,
    BackendTimeoutError,
    InvalidRequest,
    MissingApiKey,
    ProxyError,
    UnexpectedOutputKind,
)
from .history import turns_to_messages, user_message, window_history
from .resize import ImageResizer

__all__ = [
    "DEFAULT_RULES",
    "BackendError",
    "BackendInvoker",
    "BackendTimeoutError",
    "ClassificationRule",
    "ImageResizer",
    "InvalidRequest",
    "MissingApiKey",
    "OutputClassifier",
    "ProxyError",
    "ResultCache",
    "UnexpectedOutputKind",
    "make_cache_key",
    "turns_to_messages",
    "user_message",
    "window_history",
]
