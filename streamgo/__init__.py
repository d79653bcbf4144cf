"""StreamGo — Stremio desktop shell with external player hand-off and Quick Resume."""

__version__ = "1.0.0"
