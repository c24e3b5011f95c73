import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Dict, Tuple, Optional
from .graph_client import GraphClient, odata_quote
from .models import (
    ApiResource,
    Application,
    ConsoleEntry,
    Group,
    ServicePrincipal,
    User,
)

APP_SELECT = "id,appId,displayName,description,createdDateTime,signInAudience,tags,requiredResourceAccess"
SP_SELECT = "id,appId,displayName,description,createdDateTime,accountEnabled,servicePrincipalType,tags,appRoles,oauth2PermissionScopes"

# Looked up one by one when the full service principal listing fails
WELL_KNOWN_APIS = [
    "00000003-0000-0000-c000-000000000000",  # Microsoft Graph
    "00000003-0000-0ff1-ce00-000000000000",  # SharePoint
    "00000002-0000-0000-c000-000000000000",  # Azure AD Graph (legacy)
]

VIEWS = ("all", "applications", "servicePrincipals")
STATUSES = ("all", "enabled", "disabled")


def combined_listing(
    applications: List[Application],
    service_principals: List[ServicePrincipal],
    view: str = "all",
    status: str = "all",
    query: Optional[str] = None,
) -> List[ConsoleEntry]:
    """One list of applications and service principals, filtered like the console table."""
    if view not in VIEWS:
        raise ValueError(f"Unknown view {view!r}")
    if status not in STATUSES:
        raise ValueError(f"Unknown status filter {status!r}")

    entries = []
    if view in ("all", "applications"):
        for app in applications:
            entries.append(
                ConsoleEntry(
                    kind="application",
                    id=app.id,
                    app_id=app.app_id,
                    display_name=app.display_name,
                    description=app.description,
                    is_enabled=app.is_enabled,
                    sign_in_audience=app.sign_in_audience,
                    tags=app.tags,
                )
            )
    if view in ("all", "servicePrincipals"):
        for sp in service_principals:
            entries.append(
                ConsoleEntry(
                    kind="servicePrincipal",
                    id=sp.id,
                    app_id=sp.app_id,
                    display_name=sp.display_name,
                    description=sp.description,
                    is_enabled=sp.account_enabled,
                    sign_in_audience="N/A",
                    tags=sp.tags,
                )
            )

    if status == "enabled":
        entries = [e for e in entries if e.is_enabled]
    elif status == "disabled":
        entries = [e for e in entries if not e.is_enabled]

    if query:
        q = query.lower()
        entries = [
            e
            for e in entries
            if q in (e.display_name or "").lower()
            or q in (e.description or "").lower()
            or q in (e.app_id or "").lower()
        ]
    return entries


def summarize(
    applications: List[Application], service_principals: List[ServicePrincipal]
) -> Dict[str, int]:
    enabled = sum(1 for sp in service_principals if sp.account_enabled)
    return {
        "applications": len(applications),
        "servicePrincipals": len(service_principals),
        "enabledServicePrincipals": enabled,
        "disabledServicePrincipals": len(service_principals) - enabled,
    }


class DirectoryService:
    def __init__(self, client: GraphClient):
        self.client = client

    def list_applications(self) -> List[Application]:
        try:
            apps = self.client.paged_get("/applications", params={"$select": APP_SELECT})
        except Exception as e:
            logging.error(f"Error fetching applications: {e}")
            raise
        return [Application.from_graph(a) for a in apps]

    def list_service_principals(self) -> List[ServicePrincipal]:
        try:
            sps = self.client.paged_get("/servicePrincipals", params={"$select": SP_SELECT})
        except Exception as e:
            logging.error(f"Error fetching service principals: {e}")
            raise
        return [ServicePrincipal.from_graph(sp) for sp in sps]

    def load_inventory(self) -> Tuple[List[Application], List[ServicePrincipal]]:
        # the two listings are independent; fetch them side by side
        with ThreadPoolExecutor(max_workers=2) as pool:
            apps = pool.submit(self.list_applications)
            sps = pool.submit(self.list_service_principals)
            return apps.result(), sps.result()

    def api_resources(self) -> List[ApiResource]:
        try:
            sps = self.client.paged_get(
                "/servicePrincipals",
                params={"$select": "id,displayName,description,appId,appRoles,oauth2PermissionScopes"},
            )
            return [
                ApiResource.from_service_principal(sp)
                for sp in (ServicePrincipal.from_graph(d) for d in sps)
                if sp.exposes_api()
            ]
        except Exception as e:
            logging.error(f"Error fetching API resources: {e}")

        resources = []
        for app_id in WELL_KNOWN_APIS:
            try:
                resp = self.client.get(
                    "/servicePrincipals",
                    params={
                        "$filter": f"appId eq {odata_quote(app_id)}",
                        "$select": "id,displayName,description,appId,appRoles,oauth2PermissionScopes",
                    },
                )
                vals = resp.get("value") or []
                if vals:
                    resources.append(
                        ApiResource.from_service_principal(ServicePrincipal.from_graph(vals[0]))
                    )
            except Exception as e:
                logging.warning(f"Could not fetch API resource {app_id}: {e}")
        return resources

    def set_service_principal_enabled(self, service_principal_id: str, enabled: bool):
        try:
            self.client.patch(
                f"/servicePrincipals/{service_principal_id}", {"accountEnabled": enabled}
            )
        except Exception as e:
            logging.error(f"Error updating service principal status: {e}")
            raise

    def set_application_enabled(self, application_id: str, enabled: bool):
        # application objects have no enabled flag; the service principal does
        logging.info(
            f"Application status update not directly supported. App ID: {application_id}, Enabled: {enabled}"
        )

    def search_users(self, query: str) -> List[User]:
        q = odata_quote(query)
        try:
            resp = self.client.get(
                "/users",
                params={
                    "$filter": f"startswith(displayName,{q}) or startswith(userPrincipalName,{q})",
                    "$select": User.SELECT,
                    "$top": 10,
                },
            )
        except Exception as e:
            logging.error(f"Error searching users: {e}")
            raise
        return [User.from_graph(u) for u in resp.get("value", [])]

    def search_groups(self, query: str) -> List[Group]:
        q = odata_quote(query)
        try:
            resp = self.client.get(
                "/groups",
                params={
                    "$filter": f"startswith(displayName,{q}) or startswith(mail,{q})",
                    "$select": Group.SELECT,
                    "$top": 10,
                },
            )
        except Exception as e:
            logging.error(f"Error searching groups: {e}")
            raise
        return [Group.from_graph(g) for g in resp.get("value", [])]
