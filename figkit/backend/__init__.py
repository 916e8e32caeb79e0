from .base import BackendState, GraphicsBackend, Space3D

__all__ = ["BackendState", "GraphicsBackend", "Space3D"]
