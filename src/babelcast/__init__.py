"""babelcast: realtime speech translation for live subtitle overlays."""

__version__ = "0.1.0"
