"""Campaign automation orchestrator: staged creator outreach with a durable audit log."""

__version__ = "0.1.0"
