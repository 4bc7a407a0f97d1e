from . import worker

__all__ = ["worker"]
