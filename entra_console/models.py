from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional

APPLICATION = "Application"
DELEGATED = "Delegated"
ADMIN = "Admin"
USER = "User"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p[:1].upper() + p[1:] for p in rest)


def _camel_dict(obj) -> Dict[str, Any]:
    def convert(value):
        if isinstance(value, dict):
            return {_camel(k): convert(v) for k, v in value.items()}
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value

    return convert(asdict(obj))


@dataclass
class ResourceAccess:
    id: str
    type: str  # "Role" | "Scope"

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "ResourceAccess":
        return cls(id=data.get("id"), type=data.get("type"))

    def to_graph(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type}


@dataclass
class RequiredResourceAccess:
    resource_app_id: str
    resource_access: List[ResourceAccess] = field(default_factory=list)

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "RequiredResourceAccess":
        return cls(
            resource_app_id=data.get("resourceAppId"),
            resource_access=[
                ResourceAccess.from_graph(ra) for ra in data.get("resourceAccess") or []
            ],
        )

    def to_graph(self) -> Dict[str, Any]:
        return {
            "resourceAppId": self.resource_app_id,
            "resourceAccess": [ra.to_graph() for ra in self.resource_access],
        }


@dataclass
class AppRole:
    id: str
    display_name: str = ""
    description: str = ""
    value: str = ""
    is_enabled: bool = True
    allowed_member_types: List[str] = field(default_factory=list)
    is_default: bool = False

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "AppRole":
        return cls(
            id=data.get("id"),
            display_name=data.get("displayName") or "",
            description=data.get("description") or "",
            value=data.get("value") or "",
            is_enabled=data.get("isEnabled", True),
            allowed_member_types=data.get("allowedMemberTypes") or [],
            is_default=bool(data.get("isDefault")),
        )


@dataclass
class OAuth2PermissionScope:
    id: str
    value: str = ""
    type: str = USER  # "Admin" | "User"
    is_enabled: bool = True
    admin_consent_display_name: str = ""
    admin_consent_description: str = ""
    user_consent_display_name: Optional[str] = None
    user_consent_description: Optional[str] = None

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "OAuth2PermissionScope":
        return cls(
            id=data.get("id"),
            value=data.get("value") or "",
            type=data.get("type") or USER,
            is_enabled=data.get("isEnabled", True),
            admin_consent_display_name=data.get("adminConsentDisplayName") or "",
            admin_consent_description=data.get("adminConsentDescription") or "",
            user_consent_display_name=data.get("userConsentDisplayName"),
            user_consent_description=data.get("userConsentDescription"),
        )


@dataclass
class Application:
    id: str
    app_id: str
    display_name: str = ""
    description: str = ""
    created_date_time: Optional[str] = None
    sign_in_audience: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    required_resource_access: List[RequiredResourceAccess] = field(
        default_factory=list
    )
    # applications carry no enabled flag in the directory
    is_enabled: bool = True

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "Application":
        return cls(
            id=data.get("id"),
            app_id=data.get("appId"),
            display_name=data.get("displayName") or "",
            description=data.get("description") or "",
            created_date_time=data.get("createdDateTime"),
            sign_in_audience=data.get("signInAudience"),
            tags=data.get("tags") or [],
            required_resource_access=[
                RequiredResourceAccess.from_graph(r)
                for r in data.get("requiredResourceAccess") or []
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass
class ServicePrincipal:
    id: str
    app_id: str
    display_name: str = ""
    description: str = ""
    created_date_time: Optional[str] = None
    account_enabled: bool = True
    service_principal_type: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    app_roles: List[AppRole] = field(default_factory=list)
    oauth2_permission_scopes: List[OAuth2PermissionScope] = field(
        default_factory=list
    )

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "ServicePrincipal":
        return cls(
            id=data.get("id"),
            app_id=data.get("appId"),
            display_name=data.get("displayName") or "",
            description=data.get("description") or "",
            created_date_time=data.get("createdDateTime"),
            account_enabled=data.get("accountEnabled", True),
            service_principal_type=data.get("servicePrincipalType"),
            tags=data.get("tags") or [],
            app_roles=[AppRole.from_graph(r) for r in data.get("appRoles") or []],
            oauth2_permission_scopes=[
                OAuth2PermissionScope.from_graph(s)
                for s in data.get("oauth2PermissionScopes") or []
            ],
        )

    def find_role(self, role_id: str) -> Optional[AppRole]:
        return next((r for r in self.app_roles if r.id == role_id), None)

    def find_scope(
        self, scope_id: Optional[str] = None, value: Optional[str] = None
    ) -> Optional[OAuth2PermissionScope]:
        for scope in self.oauth2_permission_scopes:
            if scope_id is not None and scope.id == scope_id:
                return scope
            if value is not None and scope.value == value:
                return scope
        return None

    def exposes_api(self) -> bool:
        return bool(self.app_roles or self.oauth2_permission_scopes)

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass
class Permission:
    """
    Normalized view of one role or scope a client holds (or requests) against
    a resource API. Never stored: always rebuilt from the resource's
    service principal definitions.
    """

    id: str
    display_name: str
    description: str
    type: str  # "Application" | "Delegated"
    api: str
    api_id: Optional[str]
    value: str
    is_enabled: bool = True
    consent_type: Optional[str] = None  # "Admin" | "User", delegated only

    @classmethod
    def from_app_role(
        cls, role: AppRole, resource: ServicePrincipal
    ) -> "Permission":
        return cls(
            id=role.id,
            display_name=role.display_name,
            description=role.description,
            type=APPLICATION,
            api=resource.display_name,
            api_id=resource.app_id,
            value=role.value,
            is_enabled=role.is_enabled,
        )

    @classmethod
    def from_scope(
        cls, scope: OAuth2PermissionScope, resource: ServicePrincipal, consent_type: str
    ) -> "Permission":
        return cls(
            id=scope.id,
            display_name=scope.admin_consent_display_name or scope.value,
            description=scope.admin_consent_description
            or scope.user_consent_description
            or "",
            type=DELEGATED,
            api=resource.display_name,
            api_id=resource.app_id,
            value=scope.value,
            is_enabled=scope.is_enabled,
            consent_type=consent_type,
        )

    @property
    def access_type(self) -> str:
        return "Role" if self.type == APPLICATION else "Scope"

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass
class User:
    id: str
    display_name: str = ""
    user_principal_name: str = ""
    mail: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None

    SELECT = "id,displayName,userPrincipalName,mail,jobTitle,department"

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data.get("id"),
            display_name=data.get("displayName") or "",
            user_principal_name=data.get("userPrincipalName") or "",
            mail=data.get("mail"),
            job_title=data.get("jobTitle"),
            department=data.get("department"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass
class Group:
    id: str
    display_name: str = ""
    description: Optional[str] = None
    mail: Optional[str] = None
    group_types: List[str] = field(default_factory=list)
    security_enabled: bool = False

    SELECT = "id,displayName,description,mail,groupTypes,securityEnabled"

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "Group":
        return cls(
            id=data.get("id"),
            display_name=data.get("displayName") or "",
            description=data.get("description"),
            mail=data.get("mail"),
            group_types=data.get("groupTypes") or [],
            security_enabled=bool(data.get("securityEnabled")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass
class ApiResource:
    id: str
    app_id: str
    display_name: str = ""
    description: str = ""
    app_roles: List[AppRole] = field(default_factory=list)
    oauth2_permission_scopes: List[OAuth2PermissionScope] = field(
        default_factory=list
    )

    @classmethod
    def from_service_principal(cls, sp: ServicePrincipal) -> "ApiResource":
        return cls(
            id=sp.id,
            app_id=sp.app_id,
            display_name=sp.display_name,
            description=sp.description,
            app_roles=sp.app_roles,
            oauth2_permission_scopes=sp.oauth2_permission_scopes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass
class ConsoleEntry:
    kind: str  # "application" | "servicePrincipal"
    id: str
    app_id: str
    display_name: str
    description: str
    is_enabled: bool
    sign_in_audience: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)
