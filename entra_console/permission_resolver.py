import logging
from typing import List, Dict, Any, Optional, Set
from .graph_client import GraphClient, ResourceNotFoundError, odata_quote
from .models import (
    ADMIN,
    USER,
    Permission,
    RequiredResourceAccess,
    User,
)
from .principal_resolver import ServicePrincipalResolver


def split_scopes(scope_blob: Optional[str]) -> List[str]:
    if not isinstance(scope_blob, str) or not scope_blob.strip():
        return []
    # grants are space-separated; tolerate stray commas
    toks = scope_blob.replace(",", " ").split()
    return [t.strip() for t in toks if t.strip()]


def grant_consent_type(grant: Dict[str, Any]) -> str:
    return ADMIN if grant.get("consentType") == "AllPrincipals" else USER


class PermissionResolver:
    def __init__(
        self, client: GraphClient, resolver: Optional[ServicePrincipalResolver] = None
    ):
        self.client = client
        self.resolver = resolver or ServicePrincipalResolver(client)

    # ------------------------------------------------------------------
    # Raw reads shared with the editor
    # ------------------------------------------------------------------
    def required_resource_access(self, application_id: str) -> List[RequiredResourceAccess]:
        app = self.client.get(
            f"/applications/{application_id}",
            params={"$select": "requiredResourceAccess"},
        )
        return [
            RequiredResourceAccess.from_graph(r)
            for r in app.get("requiredResourceAccess") or []
        ]

    def app_role_assignments(self, service_principal_id: str) -> List[Dict[str, Any]]:
        return self.client.paged_get(
            f"/servicePrincipals/{service_principal_id}/appRoleAssignments"
        )

    def client_grants(self, service_principal_id: str) -> List[Dict[str, Any]]:
        return self.client.paged_get(
            "/oauth2PermissionGrants",
            params={"$filter": f"clientId eq {odata_quote(service_principal_id)}"},
        )

    # ------------------------------------------------------------------
    # Declared permissions (what the application registration requests)
    # ------------------------------------------------------------------
    def declared_permissions(self, application_id: str) -> List[Permission]:
        """
        Resolve an application's requiredResourceAccess against the resource
        service principals in this tenant. Never raises: a stale or missing
        application, or an unresolvable resource, degrades to fewer results.
        """
        try:
            required = self.required_resource_access(application_id)
        except ResourceNotFoundError:
            logging.warning(f"Application {application_id} not found or inaccessible")
            return []
        except Exception as e:
            logging.error(
                f"Failed reading requiredResourceAccess for {application_id}: {e}"
            )
            return []

        permissions = []
        for rra in required:
            try:
                sp = self.resolver.service_principal_for_app_id(rra.resource_app_id)
            except Exception as e:
                logging.warning(
                    f"Could not fetch details for resource {rra.resource_app_id}: {e}"
                )
                continue
            if not sp:
                logging.warning(
                    f"Service principal not found for resource {rra.resource_app_id}"
                )
                continue

            for access in rra.resource_access:
                if access.type == "Role":
                    role = sp.find_role(access.id)
                    if role:
                        permissions.append(Permission.from_app_role(role, sp))
                elif access.type == "Scope":
                    scope = sp.find_scope(scope_id=access.id)
                    if scope:
                        consent = ADMIN if scope.type == ADMIN else USER
                        permissions.append(Permission.from_scope(scope, sp, consent))

        return permissions

    # ------------------------------------------------------------------
    # Live permissions (what the service principal actually holds)
    # ------------------------------------------------------------------
    def live_permissions(self, service_principal_id: str) -> List[Permission]:
        """
        Application permissions come from the principal's appRoleAssignments,
        delegated ones from every oauth2PermissionGrant it is the client of.
        The two listings raise on failure; each per-item resolution only warns.
        """
        assignments = self.app_role_assignments(service_principal_id)
        grants = self.client_grants(service_principal_id)

        permissions = []

        # --- Application permissions ---
        for assignment in assignments:
            try:
                resource = self.resolver.resource_service_principal(
                    assignment["resourceId"]
                )
                role = resource.find_role(assignment.get("appRoleId"))
                if role:
                    permissions.append(Permission.from_app_role(role, resource))
            except Exception as e:
                logging.warning(
                    f"Could not fetch details for app role assignment {assignment.get('id')}: {e}"
                )

        # --- Delegated permissions ---
        for grant in grants:
            try:
                resource = self.resolver.resource_service_principal(grant["resourceId"])
                consent = grant_consent_type(grant)
                for value in split_scopes(grant.get("scope")):
                    scope = resource.find_scope(value=value)
                    if scope:
                        permissions.append(Permission.from_scope(scope, resource, consent))
            except Exception as e:
                logging.warning(
                    f"Could not fetch details for OAuth2 permission grant {grant.get('id')}: {e}"
                )

        return permissions

    def permissions_for(
        self, target_id: str, is_service_principal: bool
    ) -> List[Permission]:
        if is_service_principal:
            return self.live_permissions(target_id)
        return self.declared_permissions(target_id)

    # ------------------------------------------------------------------
    # Users holding a per-user delegated grant
    # ------------------------------------------------------------------
    def users_with_permission(self, target_id: str, permission_id: str) -> List[User]:
        try:
            sp_id = self.resolver.service_principal_id_for_target(target_id, False)
        except Exception as e:
            # not a readable application object id; treat it as a service principal id
            logging.debug(f"{target_id} is not an application ({e}); using it as a service principal id")
            sp_id = target_id
        if not sp_id:
            return []

        users = []
        seen: Set[str] = set()
        for grant in self.client_grants(sp_id):
            principal_id = grant.get("principalId")
            if grant.get("consentType") != "Principal" or not principal_id:
                continue
            if principal_id in seen:
                continue
            try:
                resource = self.resolver.resource_service_principal(grant["resourceId"])
            except Exception as e:
                logging.warning(
                    f"Could not fetch resource details for {grant.get('resourceId')}: {e}"
                )
                continue

            scope = resource.find_scope(scope_id=permission_id)
            if not scope or scope.value not in split_scopes(grant.get("scope")):
                continue

            seen.add(principal_id)
            try:
                data = self.client.get(
                    f"/users/{principal_id}", params={"$select": User.SELECT}
                )
                users.append(User.from_graph(data))
            except Exception as e:
                logging.warning(f"Could not fetch user details for {principal_id}: {e}")

        return users
