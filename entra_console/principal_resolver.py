# principal_resolver.py
import logging
from typing import Optional, Dict
from .graph_client import GraphClient, odata_quote
from .models import ServicePrincipal

SP_SELECT = "id,appId,displayName,description,appRoles,oauth2PermissionScopes"


class ServicePrincipalResolver:
    """
    Bridge between application objects, appIds and service principals.

    Responsibilities:
    - appId → service principal (the tenant-local instance of an app or API)
    - application object id / service principal id → service principal id
    - service principal id → resource definitions (appRoles, scopes)
    - caching per instance so one aggregation never re-reads the same resource

    Lookups propagate Graph errors; callers decide whether a failure degrades
    or surfaces.
    """

    def __init__(self, client: GraphClient):
        self.client = client

        # Cache: appId -> ServicePrincipal | None
        self._by_app_id: Dict[str, Optional[ServicePrincipal]] = {}

        # Cache: spId -> ServicePrincipal
        self._by_id: Dict[str, ServicePrincipal] = {}

    # --------------------------------------------------------
    # appId → service principal
    # --------------------------------------------------------
    def service_principal_for_app_id(
        self, app_id: str
    ) -> Optional[ServicePrincipal]:
        if app_id in self._by_app_id:
            return self._by_app_id[app_id]

        resp = self.client.get(
            "/servicePrincipals",
            params={"$filter": f"appId eq {odata_quote(app_id)}", "$select": SP_SELECT},
        )
        sp = (resp.get("value") or [None])[0]
        found = ServicePrincipal.from_graph(sp) if sp else None
        self._by_app_id[app_id] = found
        if found:
            self._by_id[found.id] = found
        return found

    # --------------------------------------------------------
    # spId → resource definitions
    # --------------------------------------------------------
    def resource_service_principal(self, service_principal_id: str) -> ServicePrincipal:
        if service_principal_id in self._by_id:
            return self._by_id[service_principal_id]

        data = self.client.get(
            f"/servicePrincipals/{service_principal_id}", params={"$select": SP_SELECT}
        )
        sp = ServicePrincipal.from_graph(data)
        self._by_id[service_principal_id] = sp
        return sp

    # --------------------------------------------------------
    # application object id → service principal id
    # --------------------------------------------------------
    def service_principal_id_for_target(
        self, target_id: str, is_service_principal: bool
    ) -> Optional[str]:
        """
        The console addresses a row either by service principal id or by
        application object id. Applications are translated through their
        appId; None when the application was never instantiated in the tenant.
        """
        if is_service_principal:
            return target_id

        app = self.client.get(f"/applications/{target_id}", params={"$select": "appId"})
        sp = self.service_principal_for_app_id(app.get("appId"))
        if not sp:
            logging.warning(f"No service principal found for application {target_id}")
            return None
        return sp.id
