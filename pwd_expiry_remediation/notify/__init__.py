from .dispatcher import NotificationDispatcher, NotificationError, compile_template

__all__ = ["NotificationDispatcher", "NotificationError", "compile_template"]
