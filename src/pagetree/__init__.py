"""Page tree engine over flat document stores."""

__version__ = "0.1.0"
