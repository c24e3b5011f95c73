import copy
import itertools
import re

from entra_console.graph_client import GraphApiError, ResourceNotFoundError

_QUOTED = re.compile(r"(\w+) eq '((?:[^']|'')*)'")
_BARE = re.compile(r"(\w+) eq ([\w-]+)")
_STARTSWITH = re.compile(r"startswith\((\w+),'((?:[^']|'')*)'\)")


def _filter_terms(params):
    flt = (params or {}).get("$filter") or ""
    terms = {k: v.replace("''", "'") for k, v in _QUOTED.findall(flt)}
    for k, v in _BARE.findall(flt):
        terms.setdefault(k, v)
    return terms


class FakeGraph:
    """
    In-memory stand-in for GraphClient. Understands the paths and $filter
    forms the console issues and keeps directory state across calls.
    """

    def __init__(self):
        self.applications = {}
        self.service_principals = {}
        self.users = {}
        self.groups = {}
        self.assignments = {}
        self.grants = {}
        self.calls = []
        self.failures = set()
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------
    def add_application(self, id, app_id, display_name="", required=None, **extra):
        self.applications[id] = dict(
            id=id,
            appId=app_id,
            displayName=display_name,
            requiredResourceAccess=required or [],
            **extra,
        )

    def add_service_principal(
        self, id, app_id, display_name="", app_roles=None, scopes=None, **extra
    ):
        self.service_principals[id] = dict(
            id=id,
            appId=app_id,
            displayName=display_name,
            accountEnabled=extra.pop("accountEnabled", True),
            appRoles=app_roles or [],
            oauth2PermissionScopes=scopes or [],
            **extra,
        )

    def add_assignment(self, principal_id, resource_id, app_role_id, principal_type="ServicePrincipal"):
        aid = f"assignment-{next(self._ids)}"
        self.assignments[aid] = {
            "id": aid,
            "principalId": principal_id,
            "principalType": principal_type,
            "resourceId": resource_id,
            "appRoleId": app_role_id,
        }
        return aid

    def add_grant(self, client_id, resource_id, scope, consent_type="AllPrincipals", principal_id=None):
        gid = f"grant-{next(self._ids)}"
        self.grants[gid] = {
            "id": gid,
            "clientId": client_id,
            "resourceId": resource_id,
            "scope": scope,
            "consentType": consent_type,
            "principalId": principal_id,
        }
        return gid

    def fail(self, method, path):
        self.failures.add((method, path))

    def writes(self):
        return [c for c in self.calls if c[0] != "GET"]

    # ------------------------------------------------------------------
    # GraphClient surface
    # ------------------------------------------------------------------
    def _check(self, method, path):
        self.calls.append((method, path))
        if (method, path) in self.failures:
            raise GraphApiError(500, f"injected failure for {method} {path}")

    @staticmethod
    def _not_found(path):
        return ResourceNotFoundError(404, f"Resource '{path}' does not exist", "Request_ResourceNotFound")

    def get(self, path, params=None):
        self._check("GET", path)
        result = self._read(path, params)
        if isinstance(result, list):
            return {"value": copy.deepcopy(result)}
        return copy.deepcopy(result)

    def paged_get(self, path, params=None):
        return self.get(path, params)["value"]

    def _read(self, path, params):
        parts = path.strip("/").split("/")
        terms = _filter_terms(params)

        if parts[0] == "applications":
            if len(parts) == 1:
                apps = list(self.applications.values())
                if "appId" in terms:
                    apps = [a for a in apps if a["appId"] == terms["appId"]]
                return apps
            if parts[1] not in self.applications:
                raise self._not_found(path)
            return self.applications[parts[1]]

        if parts[0] == "servicePrincipals":
            if len(parts) == 1:
                sps = list(self.service_principals.values())
                if "appId" in terms:
                    sps = [sp for sp in sps if sp["appId"] == terms["appId"]]
                return sps
            sp_id = parts[1]
            if sp_id not in self.service_principals:
                raise self._not_found(path)
            if len(parts) == 2:
                return self.service_principals[sp_id]
            if parts[2] == "appRoleAssignments":
                return [a for a in self.assignments.values() if a["principalId"] == sp_id]
            if parts[2] == "appRoleAssignedTo":
                return [a for a in self.assignments.values() if a["resourceId"] == sp_id]
            if parts[2] == "oauth2PermissionGrants":
                return [g for g in self.grants.values() if g["clientId"] == sp_id]

        if parts[0] == "oauth2PermissionGrants":
            grants = list(self.grants.values())
            for key in ("clientId", "principalId", "resourceId"):
                if key in terms:
                    grants = [g for g in grants if g.get(key) == terms[key]]
            return grants

        if parts[0] in ("users", "groups"):
            store = self.users if parts[0] == "users" else self.groups
            if len(parts) == 1:
                prefixes = [v.replace("''", "'").lower() for _, v in _STARTSWITH.findall(params["$filter"])]
                hits = [
                    o
                    for o in store.values()
                    if any(
                        str(o.get(field) or "").lower().startswith(p)
                        for field in ("displayName", "userPrincipalName", "mail")
                        for p in prefixes
                    )
                ]
                return hits[: params.get("$top", len(hits))]
            if parts[1] not in store:
                raise self._not_found(path)
            if len(parts) == 2:
                return store[parts[1]]
            if parts[2] == "appRoleAssignments":
                found = [a for a in self.assignments.values() if a["principalId"] == parts[1]]
                if "resourceId" in terms:
                    found = [a for a in found if a["resourceId"] == terms["resourceId"]]
                return found

        raise self._not_found(path)

    def post(self, path, body):
        self._check("POST", path)
        parts = path.strip("/").split("/")
        if parts[-1] == "appRoleAssignments":
            principal_type = {
                "users": "User",
                "groups": "Group",
                "servicePrincipals": "ServicePrincipal",
            }[parts[0]]
            aid = self.add_assignment(
                body["principalId"], body["resourceId"], body["appRoleId"], principal_type
            )
            return copy.deepcopy(self.assignments[aid])
        if parts == ["oauth2PermissionGrants"]:
            gid = self.add_grant(
                body["clientId"],
                body["resourceId"],
                body["scope"],
                body["consentType"],
                body.get("principalId"),
            )
            return copy.deepcopy(self.grants[gid])
        raise self._not_found(path)

    def patch(self, path, body):
        self._check("PATCH", path)
        parts = path.strip("/").split("/")
        store = {
            "applications": self.applications,
            "servicePrincipals": self.service_principals,
            "oauth2PermissionGrants": self.grants,
        }[parts[0]]
        if parts[1] not in store:
            raise self._not_found(path)
        store[parts[1]].update(copy.deepcopy(body))

    def delete(self, path):
        self._check("DELETE", path)
        parts = path.strip("/").split("/")
        if parts[0] == "oauth2PermissionGrants":
            if self.grants.pop(parts[1], None) is None:
                raise self._not_found(path)
            return
        if len(parts) == 4 and parts[2] == "appRoleAssignments":
            if self.assignments.pop(parts[3], None) is None:
                raise self._not_found(path)
            return
        raise self._not_found(path)
