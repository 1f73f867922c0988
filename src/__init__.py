"""forwarder - forward content items to remote WordPress sites."""

__version__ = "2.1.0"
