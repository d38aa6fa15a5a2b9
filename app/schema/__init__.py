"""Schema package exports."""

from .push_tokens import PushToken

__all__ = ["PushToken"]
