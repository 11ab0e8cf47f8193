"""
azurerm/directory.py

Thin client for the directory (Azure AD Graph) API.

The management SDKs cover every ARM service family, but service principal
lookups live on the Graph endpoint with its own audience, so this client
carries its own azure-core pipeline bound to the directory authorizer.
"""

import logging
from typing import Dict, List, Optional
from urllib.parse import quote

from azure.core import PipelineClient
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure.core.pipeline.policies import (
    BearerTokenCredentialPolicy,
    HeadersPolicy,
    RetryPolicy,
    UserAgentPolicy,
)
from azure.core.rest import HttpRequest

from .transport import RequestLoggingPolicy

logger = logging.getLogger(__name__)

GRAPH_API_VERSION = "1.6"


class DirectoryClient:
    """Service principal lookups for one tenant."""

    def __init__(self, base_url: str, tenant_id: str, credential, scope: str,
                 user_agent: Optional[str] = None, transport=None):
        self.base_url = base_url.rstrip("/")
        self.tenant_id = tenant_id
        policies = [
            HeadersPolicy({"Accept": "application/json"}),
            UserAgentPolicy(user_agent=user_agent),
            RetryPolicy(),
            BearerTokenCredentialPolicy(credential, scope),
            RequestLoggingPolicy(),
        ]
        kwargs = {"transport": transport} if transport is not None else {}
        self._client = PipelineClient(base_url=self.base_url, policies=policies, **kwargs)

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> dict:
        query = {"api-version": GRAPH_API_VERSION}
        query.update(params or {})
        url = f"{self.base_url}/{self.tenant_id}/{path}"
        request = HttpRequest("GET", url, params=query)
        response = self._client.send_request(request)

        if response.status_code == 404:
            raise ResourceNotFoundError(f"Directory object not found: {path}", response=response)
        if response.status_code >= 400:
            raise HttpResponseError(
                f"Directory request for {path} failed with status {response.status_code}",
                response=response,
            )
        return response.json()

    def get_service_principal(self, object_id: str) -> dict:
        return self._get(f"servicePrincipals/{quote(object_id)}")

    def list_service_principals(self, filter: Optional[str] = None) -> List[dict]:
        params = {"$filter": filter} if filter else None
        return self._get("servicePrincipals", params).get("value", [])

    def close(self) -> None:
        self._client.close()
