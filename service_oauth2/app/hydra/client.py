"""
ORY Hydra admin API client.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from shared.errors import ExternalServiceError
from shared.logging import get_logger


class TokenIntrospection(BaseModel):
    """Introspection result for an opaque access token."""
    model_config = ConfigDict(extra="allow")

    active: bool = False
    iss: Optional[str] = None
    client_id: Optional[str] = None
    sub: Optional[str] = None
    aud: List[str] = Field(default_factory=list)
    username: Optional[str] = None
    exp: Optional[int] = None
    nbf: Optional[int] = None


class OAuth2Client(BaseModel):
    """Subset of a Hydra OAuth2 client registration."""
    model_config = ConfigDict(extra="allow")

    client_id: str
    token_endpoint_auth_method: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class HydraAdminClient:
    """Client for the Hydra admin endpoints used by token introspection."""

    def __init__(self, admin_url: str, http_client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.admin_url = admin_url.rstrip("/")
        self.logger = get_logger("oauth2.hydra")
        self._http = http_client or httpx.Client(timeout=timeout)

    def introspect_token(self, token: str) -> TokenIntrospection:
        """Ask Hydra whether an opaque token is active."""
        response = self._request(
            "POST",
            "/admin/oauth2/introspect",
            data={"token": token},
        )
        introspection = TokenIntrospection.model_validate(response.json())
        self.logger.debug(
            "Token introspected",
            active=introspection.active,
            iss=introspection.iss,
            client_id=introspection.client_id,
            aud=introspection.aud,
            username=introspection.username,
            exp=introspection.exp,
            nbf=introspection.nbf,
        )
        return introspection

    def get_client(self, client_id: str) -> OAuth2Client:
        """Fetch a client registration."""
        response = self._request("GET", f"/admin/clients/{client_id}")
        return OAuth2Client.model_validate(response.json())

    def update_client_metadata(self, client_id: str, metadata: Dict[str, Any]) -> OAuth2Client:
        """Merge ``metadata`` into the client's metadata and save the registration."""
        registration = self._request("GET", f"/admin/clients/{client_id}").json()
        merged = dict(registration.get("metadata") or {})
        merged.update(metadata)
        registration["metadata"] = merged

        response = self._request("PUT", f"/admin/clients/{client_id}", json=registration)
        self.logger.info("Hydra client metadata updated", client_id=client_id, keys=sorted(metadata))
        return OAuth2Client.model_validate(response.json())

    def close(self):
        self._http.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._http.request(method, f"{self.admin_url}{path}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.logger.error(
                "Hydra admin error",
                method=method,
                path=path,
                status_code=e.response.status_code,
            )
            raise ExternalServiceError(
                "hydra",
                f"HTTP {e.response.status_code}",
                details={"path": path, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            self.logger.error("Hydra admin unavailable", method=method, path=path, error=str(e))
            raise ExternalServiceError("hydra", "unavailable", details={"path": path, "error": str(e)}) from e
        return response
