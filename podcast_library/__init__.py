"""Mirror podcast feeds into a TV-show shaped media library."""

__version__ = "1.0.0"
