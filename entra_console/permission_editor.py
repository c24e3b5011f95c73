import logging
from typing import List, Optional
from .graph_client import GraphClient, ResourceNotFoundError, odata_quote
from .models import ADMIN, DELEGATED, APPLICATION, Permission, RequiredResourceAccess, ResourceAccess
from .permission_resolver import PermissionResolver, split_scopes
from .principal_resolver import ServicePrincipalResolver


class PermissionEditor:
    """
    Writes permission changes back to the directory.

    Every operation is a read-modify-write chain with no atomicity: if a
    later call fails, earlier writes stay applied. Failures are logged and
    re-raised so the caller can report them.
    """

    def __init__(
        self,
        client: GraphClient,
        resolver: Optional[ServicePrincipalResolver] = None,
        permissions: Optional[PermissionResolver] = None,
    ):
        self.client = client
        self.resolver = resolver or ServicePrincipalResolver(client)
        self.permissions = permissions or PermissionResolver(client, self.resolver)

    def _write_required_resource_access(
        self, application_id: str, required: List[RequiredResourceAccess]
    ):
        self.client.patch(
            f"/applications/{application_id}",
            {"requiredResourceAccess": [r.to_graph() for r in required]},
        )

    def _resource_sp_id(self, resource_app_id: str) -> str:
        sp = self.resolver.service_principal_for_app_id(resource_app_id)
        if not sp:
            raise ResourceNotFoundError(
                None, f"Service principal not found for application ID: {resource_app_id}"
            )
        return sp.id

    def _scope_value(self, resource_id: str, permission: Permission) -> str:
        """Grants carry scope values, so the id is looked up on the resource."""
        resource = self.resolver.resource_service_principal(resource_id)
        scope = resource.find_scope(scope_id=permission.id)
        if not scope or not scope.value:
            raise ResourceNotFoundError(
                None,
                f"Delegated permission {permission.id} is not exposed by {resource.display_name}",
            )
        return scope.value

    def _check_app_role(self, resource_id: str, permission: Permission):
        resource = self.resolver.resource_service_principal(resource_id)
        if not resource.find_role(permission.id):
            raise ResourceNotFoundError(
                None,
                f"Application permission {permission.id} is not exposed by {resource.display_name}",
            )

    # ------------------------------------------------------------------
    # Declared side (application registration)
    # ------------------------------------------------------------------
    def add_declared_permission(self, application_id: str, permission: Permission):
        try:
            required = self.permissions.required_resource_access(application_id)

            entry = next(
                (r for r in required if r.resource_app_id == permission.api_id), None
            )
            if entry is None:
                entry = RequiredResourceAccess(resource_app_id=permission.api_id)
                required.append(entry)

            access_type = permission.access_type
            if any(
                ra.id == permission.id and ra.type == access_type
                for ra in entry.resource_access
            ):
                return

            entry.resource_access.append(ResourceAccess(id=permission.id, type=access_type))
            self._write_required_resource_access(application_id, required)
        except Exception as e:
            logging.error(f"Error adding permission to application {application_id}: {e}")
            raise

    def remove_declared_permission(self, application_id: str, permission_id: str):
        try:
            required = self.permissions.required_resource_access(application_id)
            for entry in required:
                entry.resource_access = [
                    ra for ra in entry.resource_access if ra.id != permission_id
                ]
            remaining = [r for r in required if r.resource_access]
            self._write_required_resource_access(application_id, remaining)
        except Exception as e:
            logging.error(
                f"Error removing permission from application {application_id}: {e}"
            )
            raise

    # ------------------------------------------------------------------
    # Live side (service principal grants and assignments)
    # ------------------------------------------------------------------
    def add_live_permission(self, service_principal_id: str, permission: Permission):
        try:
            resource_id = self._resource_sp_id(permission.api_id)

            if permission.type == APPLICATION:
                self._check_app_role(resource_id, permission)
                self.client.post(
                    f"/servicePrincipals/{service_principal_id}/appRoleAssignments",
                    {
                        "principalId": service_principal_id,
                        "resourceId": resource_id,
                        "appRoleId": permission.id,
                    },
                )
                return

            value = self._scope_value(resource_id, permission)

            # one AllPrincipals grant per client/resource pair
            existing = next(
                (
                    g
                    for g in self.permissions.client_grants(service_principal_id)
                    if g.get("resourceId") == resource_id
                    and g.get("consentType") == "AllPrincipals"
                ),
                None,
            )
            if existing:
                scopes = split_scopes(existing.get("scope"))
                if value not in scopes:
                    scopes.append(value)
                    self.client.patch(
                        f"/oauth2PermissionGrants/{existing['id']}",
                        {"scope": " ".join(scopes)},
                    )
                return

            self.client.post(
                "/oauth2PermissionGrants",
                {
                    "clientId": service_principal_id,
                    "consentType": "AllPrincipals",
                    "resourceId": resource_id,
                    "scope": value,
                },
            )
        except Exception as e:
            logging.error(
                f"Error adding permission to service principal {service_principal_id}: {e}"
            )
            raise

    def _scope_tokens_for(self, grant: dict, permission_id: str) -> List[str]:
        """Scope values in this grant that stand for the given permission id."""
        tokens = [permission_id]
        try:
            resource = self.resolver.resource_service_principal(grant["resourceId"])
            scope = resource.find_scope(scope_id=permission_id)
            if scope:
                tokens.append(scope.value)
        except Exception as e:
            logging.warning(
                f"Could not resolve scopes for resource {grant.get('resourceId')}: {e}"
            )
        return tokens

    def remove_live_permission(
        self, service_principal_id: str, permission_id: str, admin_only: bool = False
    ):
        """
        Drop a role or scope from everything the principal holds. With
        admin_only, app role assignments and per-user grants are left alone.
        """
        try:
            if not admin_only:
                for assignment in self.permissions.app_role_assignments(
                    service_principal_id
                ):
                    if assignment.get("appRoleId") == permission_id:
                        self.client.delete(
                            f"/servicePrincipals/{service_principal_id}/appRoleAssignments/{assignment['id']}"
                        )

            for grant in self.permissions.client_grants(service_principal_id):
                if admin_only and grant.get("consentType") != "AllPrincipals":
                    continue
                scopes = split_scopes(grant.get("scope"))
                drop = self._scope_tokens_for(grant, permission_id)
                updated = [s for s in scopes if s not in drop]
                if len(updated) == len(scopes):
                    continue
                if not updated:
                    self.client.delete(f"/oauth2PermissionGrants/{grant['id']}")
                else:
                    self.client.patch(
                        f"/oauth2PermissionGrants/{grant['id']}",
                        {"scope": " ".join(updated)},
                    )
        except Exception as e:
            logging.error(
                f"Error removing permission from service principal {service_principal_id}: {e}"
            )
            raise

    def revoke_app_role_assignment(self, service_principal_id: str, app_role_id: str):
        try:
            assignment = next(
                (
                    a
                    for a in self.permissions.app_role_assignments(service_principal_id)
                    if a.get("appRoleId") == app_role_id
                ),
                None,
            )
            if not assignment:
                raise ResourceNotFoundError(
                    None, f"No app role assignment found for role {app_role_id}"
                )
            self.client.delete(
                f"/servicePrincipals/{service_principal_id}/appRoleAssignments/{assignment['id']}"
            )
            logging.info(
                f"Removed app role assignment {assignment['id']} from service principal {service_principal_id}"
            )
        except Exception as e:
            logging.error(f"Error removing app role assignment: {e}")
            raise

    def remove_permission(
        self, target_id: str, permission_id: str, is_service_principal: bool
    ):
        if is_service_principal:
            self.remove_live_permission(target_id, permission_id)
        else:
            self.remove_declared_permission(target_id, permission_id)

    def add_permission(
        self, target_id: str, permission: Permission, is_service_principal: bool
    ):
        if is_service_principal:
            self.add_live_permission(target_id, permission)
        else:
            self.add_declared_permission(target_id, permission)

    # ------------------------------------------------------------------
    # Per-user delegated consent
    # ------------------------------------------------------------------
    def grant_user_consent(
        self, client_sp_id: str, user_id: str, permission: Permission
    ) -> dict:
        if permission.type != DELEGATED:
            raise ValueError("Only delegated permissions can be consented per user")
        try:
            resource_id = self._resource_sp_id(permission.api_id)
            value = self._scope_value(resource_id, permission)
            return self.client.post(
                "/oauth2PermissionGrants",
                {
                    "clientId": client_sp_id,
                    "consentType": "Principal",
                    "principalId": user_id,
                    "resourceId": resource_id,
                    "scope": value,
                },
            )
        except Exception as e:
            logging.error(f"Error granting delegated permission to {user_id}: {e}")
            raise

    def revoke_user_consent(self, client_sp_id: str, user_id: str):
        try:
            grants = self.client.paged_get(
                "/oauth2PermissionGrants",
                params={
                    "$filter": f"clientId eq {odata_quote(client_sp_id)} and principalId eq {odata_quote(user_id)}"
                },
            )
            for grant in grants:
                self.client.delete(f"/oauth2PermissionGrants/{grant['id']}")
        except Exception as e:
            logging.error(f"Error revoking delegated permission for {user_id}: {e}")
            raise

    # ------------------------------------------------------------------
    # Bulk revocation
    # ------------------------------------------------------------------
    def revoke_all_admin_consents(self, target_id: str, is_service_principal: bool):
        try:
            permissions = self.permissions.permissions_for(target_id, is_service_principal)
            for perm in permissions:
                if perm.type != DELEGATED or perm.consent_type != ADMIN:
                    continue
                if is_service_principal:
                    self.remove_live_permission(target_id, perm.id, admin_only=True)
                else:
                    self.remove_declared_permission(target_id, perm.id)
        except Exception as e:
            logging.error(f"Error revoking admin consent for {target_id}: {e}")
            raise

    def revoke_all_permissions(self, service_principal_id: str):
        try:
            grants = self.client.paged_get(
                f"/servicePrincipals/{service_principal_id}/oauth2PermissionGrants"
            )
            for grant in grants:
                self.client.delete(f"/oauth2PermissionGrants/{grant['id']}")

            for assignment in self.permissions.app_role_assignments(service_principal_id):
                self.client.delete(
                    f"/servicePrincipals/{service_principal_id}/appRoleAssignments/{assignment['id']}"
                )
        except Exception as e:
            logging.error(
                f"Error revoking all permissions of service principal {service_principal_id}: {e}"
            )
            raise
