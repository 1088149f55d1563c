"""AS-CMS identity and access service."""

__version__ = "1.0.0"
