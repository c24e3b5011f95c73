import requests
import msal
import logging
from typing import List, Dict, Any, Optional
from .config import config


class GraphApiError(RuntimeError):
    """A Graph call answered with an HTTP error status."""

    def __init__(
        self, status_code: Optional[int], message: str, code: Optional[str] = None
    ):
        super().__init__(f"Graph API error {status_code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class ResourceNotFoundError(GraphApiError):
    """The directory object does not exist or is not visible to the caller."""


def odata_quote(value: str) -> str:
    # OData string literals escape a quote by doubling it
    return "'" + str(value).replace("'", "''") + "'"


def _error_details(resp: requests.Response):
    try:
        err = resp.json().get("error") or {}
    except ValueError:
        return None, resp.text
    return err.get("code"), err.get("message") or resp.text


class GraphClient:
    def __init__(
        self,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        base_url: str = config.GRAPH_BASE,
        timeout: int = config.REQUEST_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.token = token or self._get_token()

    def _get_token(self) -> str:
        app = msal.ConfidentialClientApplication(
            config.CLIENT_ID,
            authority=config.AUTHORITY,
            client_credential=config.CLIENT_SECRET,
        )
        result = app.acquire_token_for_client(
            scopes=["https://graph.microsoft.com/.default"]
        )
        if "access_token" not in result:
            raise RuntimeError(f"Failed to acquire token: {result}")
        return result["access_token"]

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        headers = {"Authorization": f"Bearer {self.token}"}
        url = self._url(path)
        resp = self.session.request(
            method, url, headers=headers, params=params, json=body, timeout=self.timeout
        )
        if resp.status_code >= 400:
            code, message = _error_details(resp)
            not_found = resp.status_code == 404 or code == "Request_ResourceNotFound"
            # missing objects are a routine answer to lookups
            logging.log(
                logging.INFO if not_found else logging.ERROR,
                "Graph API error %s %s -> %s: %s",
                method,
                url,
                resp.status_code,
                message,
            )
            if not_found:
                raise ResourceNotFoundError(resp.status_code, message, code)
            raise GraphApiError(resp.status_code, message, code)
        return resp

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("GET", path, params=params).json()

    def paged_get(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        items = []
        url = path
        while url:
            data = self.get(url, params)
            items.extend(data.get("value", []))
            url = data.get("@odata.nextLink")
            params = None
        return items

    def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        resp = self._request("POST", path, body=body)
        return resp.json() if resp.content else {}

    def patch(self, path: str, body: Dict[str, Any]) -> None:
        self._request("PATCH", path, body=body)

    def delete(self, path: str) -> None:
        self._request("DELETE", path)

    def close(self):
        self.session.close()
