import pytest

from entra_console.console import Console
from fake_graph import FakeGraph

GRAPH_APP_ID = "00000003-0000-0000-c000-000000000000"
CLIENT_APP_ID = "11111111-aaaa-bbbb-cccc-000000000001"
HR_APP_ID = "22222222-aaaa-bbbb-cccc-000000000002"

ROLE_USER_READ_ALL = "df021288-bdef-4463-88db-98f22de89214"
ROLE_MAIL_SEND = "b633e1c5-b582-4048-a93e-9f11b44c7e96"
SCOPE_USER_READ = "e1fe6dd8-ba31-4d61-89e7-88639da4683d"
SCOPE_DIRECTORY_READ = "06da0dbc-49e2-44d2-8312-53f166ab848a"
ROLE_HR_USER = "hr-role-user"
ROLE_HR_ADMIN = "hr-role-admin"


@pytest.fixture
def graph():
    g = FakeGraph()

    g.add_service_principal(
        "sp-graph",
        GRAPH_APP_ID,
        "Microsoft Graph",
        app_roles=[
            {
                "id": ROLE_USER_READ_ALL,
                "displayName": "Read all users' full profiles",
                "description": "Allows the app to read user profiles without a signed-in user.",
                "value": "User.Read.All",
                "isEnabled": True,
                "allowedMemberTypes": ["Application"],
            },
            {
                "id": ROLE_MAIL_SEND,
                "displayName": "Send mail as any user",
                "description": "Allows the app to send mail as any user.",
                "value": "Mail.Send",
                "isEnabled": True,
                "allowedMemberTypes": ["Application"],
            },
        ],
        scopes=[
            {
                "id": SCOPE_USER_READ,
                "value": "User.Read",
                "type": "User",
                "isEnabled": True,
                "adminConsentDisplayName": "Sign in and read user profile",
                "adminConsentDescription": "Allows users to sign in to the app.",
            },
            {
                "id": SCOPE_DIRECTORY_READ,
                "value": "Directory.Read.All",
                "type": "Admin",
                "isEnabled": True,
                "adminConsentDisplayName": "",
                "adminConsentDescription": "",
                "userConsentDescription": "Read directory data",
            },
        ],
    )

    g.add_application("app-client", CLIENT_APP_ID, "Sales Dashboard", description="CRM")
    g.add_service_principal("sp-client", CLIENT_APP_ID, "Sales Dashboard")

    g.add_application("app-hr", HR_APP_ID, "HR Portal")
    g.add_service_principal(
        "sp-hr",
        HR_APP_ID,
        "HR Portal",
        app_roles=[
            {"id": ROLE_HR_ADMIN, "displayName": "Admin", "value": "Admin"},
            {"id": ROLE_HR_USER, "displayName": "User", "value": "User"},
        ],
        accountEnabled=False,
    )

    g.add_application("app-orphan", "33333333-aaaa-bbbb-cccc-000000000003", "Orphan")

    g.users["user-alice"] = {
        "id": "user-alice",
        "displayName": "Alice Admin",
        "userPrincipalName": "alice@contoso.com",
        "mail": "alice@contoso.com",
    }
    g.users["user-bob"] = {
        "id": "user-bob",
        "displayName": "Bob Builder",
        "userPrincipalName": "bob@contoso.com",
    }
    g.groups["group-finance"] = {
        "id": "group-finance",
        "displayName": "Finance Team",
        "mail": "finance@contoso.com",
        "groupTypes": [],
        "securityEnabled": True,
    }
    return g


@pytest.fixture
def console(graph):
    return Console(graph)
