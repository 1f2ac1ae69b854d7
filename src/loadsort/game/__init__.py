"""Installation state consumed by the load order engine."""

from .installation import Installation, Plugin, is_plugin_filename

__all__ = ["Installation", "Plugin", "is_plugin_filename"]
