import logging
from typing import List, Optional, Set
from .graph_client import GraphClient, ResourceNotFoundError
from .models import AppRole, Group, User
from .principal_resolver import ServicePrincipalResolver

# Graph's implicit "default access" role, used when the app defines none
DEFAULT_ACCESS_ROLE_ID = "00000000-0000-0000-0000-000000000000"


def pick_default_role(app_roles: List[AppRole]) -> str:
    if not app_roles:
        return DEFAULT_ACCESS_ROLE_ID
    role = next(
        (
            r
            for r in app_roles
            if r.value == "User" or r.display_name == "User" or r.is_default
        ),
        app_roles[0],
    )
    return role.id


class AssignmentManager:
    """Users and groups assigned to an application through app role assignments."""

    def __init__(
        self, client: GraphClient, resolver: Optional[ServicePrincipalResolver] = None
    ):
        self.client = client
        self.resolver = resolver or ServicePrincipalResolver(client)

    def _require_sp_id(self, target_id: str, is_service_principal: bool) -> str:
        sp_id = self.resolver.service_principal_id_for_target(
            target_id, is_service_principal
        )
        if not sp_id:
            raise ResourceNotFoundError(
                None, "No service principal found for this application"
            )
        return sp_id

    def _assigned_principals(
        self, target_id: str, is_service_principal: bool, principal_type: str
    ) -> List[str]:
        sp_id = self.resolver.service_principal_id_for_target(
            target_id, is_service_principal
        )
        if not sp_id:
            return []

        assignments = self.client.paged_get(f"/servicePrincipals/{sp_id}/appRoleAssignedTo")
        ids = []
        seen: Set[str] = set()
        for a in assignments:
            pid = a.get("principalId")
            if a.get("principalType") == principal_type and pid and pid not in seen:
                seen.add(pid)
                ids.append(pid)
        return ids

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------
    def assigned_users(self, target_id: str, is_service_principal: bool) -> List[User]:
        try:
            principal_ids = self._assigned_principals(
                target_id, is_service_principal, "User"
            )
        except Exception as e:
            logging.error(f"Error fetching assigned users for {target_id}: {e}")
            raise

        users = []
        for pid in principal_ids:
            try:
                data = self.client.get(f"/users/{pid}", params={"$select": User.SELECT})
                users.append(User.from_graph(data))
            except Exception as e:
                logging.warning(f"Could not fetch user details for {pid}: {e}")
        return users

    def assigned_groups(self, target_id: str, is_service_principal: bool) -> List[Group]:
        try:
            principal_ids = self._assigned_principals(
                target_id, is_service_principal, "Group"
            )
        except Exception as e:
            logging.error(f"Error fetching assigned groups for {target_id}: {e}")
            raise

        groups = []
        for pid in principal_ids:
            try:
                data = self.client.get(f"/groups/{pid}", params={"$select": Group.SELECT})
                groups.append(Group.from_graph(data))
            except Exception as e:
                logging.warning(f"Could not fetch group details for {pid}: {e}")
        return groups

    # ------------------------------------------------------------------
    # Assign / remove
    # ------------------------------------------------------------------
    def _assign(
        self, collection: str, principal_id: str, target_id: str, is_service_principal: bool
    ) -> dict:
        sp_id = self._require_sp_id(target_id, is_service_principal)
        sp = self.resolver.resource_service_principal(sp_id)
        return self.client.post(
            f"/{collection}/{principal_id}/appRoleAssignments",
            {
                "principalId": principal_id,
                "resourceId": sp_id,
                "appRoleId": pick_default_role(sp.app_roles),
            },
        )

    def _remove(
        self, collection: str, principal_id: str, target_id: str, is_service_principal: bool
    ):
        sp_id = self.resolver.service_principal_id_for_target(
            target_id, is_service_principal
        )
        if not sp_id:
            return

        # resourceId is a Guid property: compared without quotes
        assignments = self.client.paged_get(
            f"/{collection}/{principal_id}/appRoleAssignments",
            params={"$filter": f"resourceId eq {sp_id}"},
        )
        if not assignments:
            logging.info(f"No role assignments found for {principal_id} on {sp_id}")
            return

        for assignment in assignments:
            self.client.delete(
                f"/{collection}/{principal_id}/appRoleAssignments/{assignment['id']}"
            )
            logging.info(f"Removed assignment {assignment['id']} from {principal_id}")

    def assign_user(self, target_id: str, user_id: str, is_service_principal: bool) -> dict:
        try:
            return self._assign("users", user_id, target_id, is_service_principal)
        except Exception as e:
            logging.error(f"Error assigning user {user_id} to {target_id}: {e}")
            raise

    def remove_user(self, target_id: str, user_id: str, is_service_principal: bool):
        try:
            self._remove("users", user_id, target_id, is_service_principal)
        except Exception as e:
            logging.error(f"Error removing user {user_id} from {target_id}: {e}")
            raise

    def assign_group(self, target_id: str, group_id: str, is_service_principal: bool) -> dict:
        try:
            return self._assign("groups", group_id, target_id, is_service_principal)
        except Exception as e:
            logging.error(f"Error assigning group {group_id} to {target_id}: {e}")
            raise

    def remove_group(self, target_id: str, group_id: str, is_service_principal: bool):
        try:
            self._remove("groups", group_id, target_id, is_service_principal)
        except Exception as e:
            logging.error(f"Error removing group {group_id} from {target_id}: {e}")
            raise
