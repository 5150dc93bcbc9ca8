"""Operator message rendering.

Provides ``MessageRenderer``, a Jinja2 template engine that renders the
submission envelope and file captions sent to the Telegram chat.
"""

from intake_forms.message.renderer import MessageRenderer

__all__ = ["MessageRenderer"]
