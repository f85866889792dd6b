"""pattern-tracker: knowledge source monitoring and pattern moderation pipeline."""

__version__ = "0.1.0"
