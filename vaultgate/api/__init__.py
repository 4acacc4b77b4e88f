"""HTTP surface of the control plane."""

from .main import create_app

__all__ = ["create_app"]
