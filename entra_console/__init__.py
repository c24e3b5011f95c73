from .console import Console
from .graph_client import GraphApiError, GraphClient, ResourceNotFoundError
from .models import Permission

__all__ = [
    "Console",
    "GraphApiError",
    "GraphClient",
    "Permission",
    "ResourceNotFoundError",
]
