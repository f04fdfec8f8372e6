"""DevOps pipeline gateway."""

__version__ = "0.1.0"
