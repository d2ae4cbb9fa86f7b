"""musicfox: session core of a terminal music client."""

__version__ = "0.3.0"
