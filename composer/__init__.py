"""StoryComposer scene composition and layout engine."""

from .constants import APP_NAME, VERSION, __version__

__all__ = ['APP_NAME', 'VERSION', '__version__']
