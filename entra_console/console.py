from typing import Optional
from .assignments import AssignmentManager
from .directory import DirectoryService
from .graph_client import GraphClient
from .permission_editor import PermissionEditor
from .permission_resolver import PermissionResolver
from .principal_resolver import ServicePrincipalResolver


class Console:
    """All console services over a single Graph client and lookup cache."""

    def __init__(self, client: Optional[GraphClient] = None):
        self.client = client or GraphClient()
        self.resolver = ServicePrincipalResolver(self.client)
        self.directory = DirectoryService(self.client)
        self.permissions = PermissionResolver(self.client, self.resolver)
        self.editor = PermissionEditor(self.client, self.resolver, self.permissions)
        self.assignments = AssignmentManager(self.client, self.resolver)
