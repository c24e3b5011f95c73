"""
Console HTTP API.

Administrators sign in through /login (delegated MSAL authorization-code
flow); every /api route then runs against Graph with that administrator's
token. Targets are addressed by object id, with ?is_service_principal=
telling whether the id is an application registration or a service
principal.
"""

import logging
from functools import lru_cache
from typing import Iterator, Optional
from urllib.parse import urlencode

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from ..config import config
from ..console import Console
from ..directory import combined_listing, summarize
from ..graph_client import GraphApiError, GraphClient, ResourceNotFoundError
from .auth_handler import AzureAuthHandler
from .schemas import MessageOut, PermissionIn, PrincipalIn, StatusIn, UserConsentIn

app = FastAPI(title="Entra Console", version="1.0.0")
app.add_middleware(SessionMiddleware, secret_key=config.SESSION_SECRET)


@lru_cache(maxsize=1)
def get_auth_handler() -> AzureAuthHandler:
    return AzureAuthHandler()


def get_console(
    request: Request, auth_handler: AzureAuthHandler = Depends(get_auth_handler)
) -> Iterator[Console]:
    tenant_id = request.session.get("tenant_id")
    if not tenant_id:
        raise HTTPException(status_code=401, detail="Not signed in")
    access_token = auth_handler.get_valid_access_token(tenant_id)
    if not access_token:
        raise HTTPException(status_code=401, detail="Not authenticated for this tenant")

    # one Graph session per request, closed once the response is sent
    client = GraphClient(token=access_token)
    try:
        yield Console(client)
    finally:
        client.close()


@app.exception_handler(ResourceNotFoundError)
async def not_found_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(GraphApiError)
async def graph_error_handler(request: Request, exc: GraphApiError):
    return JSONResponse(
        status_code=502,
        content={"detail": exc.message, "status": exc.status_code, "code": exc.code},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# ----------------------------------------------------------------------
# Sign-in
# ----------------------------------------------------------------------


@app.get("/")
def root(request: Request):
    tenant_id = request.session.get("tenant_id")
    return {"logged_in": bool(tenant_id), "tenant_id": tenant_id}


@app.get("/login")
def login(auth_handler: AzureAuthHandler = Depends(get_auth_handler)):
    try:
        return RedirectResponse(auth_handler.get_auth_url())
    except Exception as e:
        logging.error(f"Failed to generate auth URL: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to generate auth URL: {e}")


@app.get("/callback")
def callback(
    request: Request,
    code: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    auth_handler: AzureAuthHandler = Depends(get_auth_handler),
):
    if error:
        logging.warning(f"Sign-in failed: {error}: {error_description}")
        raise HTTPException(status_code=400, detail=f"{error}: {error_description}")
    if not code:
        raise HTTPException(status_code=400, detail="No authorization code received")

    try:
        tenant_id, _ = auth_handler.acquire_token_by_authorization_code(code)
    except Exception as e:
        logging.error(f"Token exchange failed: {e}")
        raise HTTPException(status_code=400, detail=f"Authentication failed: {e}")

    request.session["tenant_id"] = tenant_id
    return RedirectResponse("/")


@app.get("/logout")
def logout(
    request: Request, auth_handler: AzureAuthHandler = Depends(get_auth_handler)
):
    tenant_id = request.session.pop("tenant_id", None)
    if tenant_id:
        auth_handler.logout_tenant(tenant_id)

    logout_url = f"{config.AUTHORITY}/oauth2/v2.0/logout"
    params = {"post_logout_redirect_uri": config.POST_LOGOUT_REDIRECT_URI}
    return RedirectResponse(f"{logout_url}?{urlencode(params)}")


# ----------------------------------------------------------------------
# Inventory
# ----------------------------------------------------------------------


@app.get("/api/applications")
def list_applications(
    view: str = "all",
    status: str = "all",
    q: Optional[str] = None,
    console: Console = Depends(get_console),
):
    apps, sps = console.directory.load_inventory()
    return [e.to_dict() for e in combined_listing(apps, sps, view, status, q)]


@app.get("/api/summary")
def summary(console: Console = Depends(get_console)):
    apps, sps = console.directory.load_inventory()
    return summarize(apps, sps)


@app.get("/api/api-resources")
def api_resources(console: Console = Depends(get_console)):
    return [r.to_dict() for r in console.directory.api_resources()]


@app.patch("/api/service-principals/{sp_id}", response_model=MessageOut)
def update_service_principal(
    sp_id: str, body: StatusIn, console: Console = Depends(get_console)
):
    console.directory.set_service_principal_enabled(sp_id, body.account_enabled)
    return MessageOut()


@app.patch("/api/applications/{application_id}", response_model=MessageOut)
def update_application(
    application_id: str, body: StatusIn, console: Console = Depends(get_console)
):
    console.directory.set_application_enabled(application_id, body.account_enabled)
    return MessageOut(detail="Applications have no enabled flag; nothing changed")


@app.get("/api/users/search")
def search_users(q: str, console: Console = Depends(get_console)):
    return [u.to_dict() for u in console.directory.search_users(q)]


@app.get("/api/groups/search")
def search_groups(q: str, console: Console = Depends(get_console)):
    return [g.to_dict() for g in console.directory.search_groups(q)]


# ----------------------------------------------------------------------
# Permissions
# ----------------------------------------------------------------------


@app.get("/api/targets/{target_id}/permissions")
def get_permissions(
    target_id: str,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    perms = console.permissions.permissions_for(target_id, is_service_principal)
    return [p.to_dict() for p in perms]


@app.post("/api/targets/{target_id}/permissions", response_model=MessageOut)
def add_permission(
    target_id: str,
    body: PermissionIn,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    console.editor.add_permission(target_id, body.to_permission(), is_service_principal)
    return MessageOut()


@app.delete(
    "/api/targets/{target_id}/permissions/{permission_id}", response_model=MessageOut
)
def remove_permission(
    target_id: str,
    permission_id: str,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    console.editor.remove_permission(target_id, permission_id, is_service_principal)
    return MessageOut()


@app.get("/api/targets/{target_id}/permissions/{permission_id}/users")
def users_with_permission(
    target_id: str, permission_id: str, console: Console = Depends(get_console)
):
    users = console.permissions.users_with_permission(target_id, permission_id)
    return [u.to_dict() for u in users]


@app.post("/api/targets/{target_id}/revoke-admin-consents", response_model=MessageOut)
def revoke_admin_consents(
    target_id: str,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    console.editor.revoke_all_admin_consents(target_id, is_service_principal)
    return MessageOut()


@app.post("/api/service-principals/{sp_id}/revoke-all", response_model=MessageOut)
def revoke_all(sp_id: str, console: Console = Depends(get_console)):
    console.editor.revoke_all_permissions(sp_id)
    return MessageOut()


@app.delete(
    "/api/service-principals/{sp_id}/app-role-assignments/{app_role_id}",
    response_model=MessageOut,
)
def revoke_app_role_assignment(
    sp_id: str, app_role_id: str, console: Console = Depends(get_console)
):
    console.editor.revoke_app_role_assignment(sp_id, app_role_id)
    return MessageOut()


@app.post("/api/service-principals/{sp_id}/user-consents")
def grant_user_consent(
    sp_id: str, body: UserConsentIn, console: Console = Depends(get_console)
):
    return console.editor.grant_user_consent(
        sp_id, body.user_id, body.permission.to_permission()
    )


@app.delete(
    "/api/service-principals/{sp_id}/user-consents/{user_id}", response_model=MessageOut
)
def revoke_user_consent(
    sp_id: str, user_id: str, console: Console = Depends(get_console)
):
    console.editor.revoke_user_consent(sp_id, user_id)
    return MessageOut()


# ----------------------------------------------------------------------
# User and group assignment
# ----------------------------------------------------------------------


@app.get("/api/targets/{target_id}/users")
def assigned_users(
    target_id: str,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    users = console.assignments.assigned_users(target_id, is_service_principal)
    return [u.to_dict() for u in users]


@app.post("/api/targets/{target_id}/users")
def assign_user(
    target_id: str,
    body: PrincipalIn,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    return console.assignments.assign_user(
        target_id, body.principal_id, is_service_principal
    )


@app.delete("/api/targets/{target_id}/users/{user_id}", response_model=MessageOut)
def remove_user(
    target_id: str,
    user_id: str,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    console.assignments.remove_user(target_id, user_id, is_service_principal)
    return MessageOut()


@app.get("/api/targets/{target_id}/groups")
def assigned_groups(
    target_id: str,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    groups = console.assignments.assigned_groups(target_id, is_service_principal)
    return [g.to_dict() for g in groups]


@app.post("/api/targets/{target_id}/groups")
def assign_group(
    target_id: str,
    body: PrincipalIn,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    return console.assignments.assign_group(
        target_id, body.principal_id, is_service_principal
    )


@app.delete("/api/targets/{target_id}/groups/{group_id}", response_model=MessageOut)
def remove_group(
    target_id: str,
    group_id: str,
    is_service_principal: bool = False,
    console: Console = Depends(get_console),
):
    console.assignments.remove_group(target_id, group_id, is_service_principal)
    return MessageOut()


def main():
    logging.basicConfig(
        level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s"
    )
    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    main()
