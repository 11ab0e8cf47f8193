"""
azurerm/resources/client_config.py

azurerm_client_config data source: who the session is authenticated as.
"""

import logging
from typing import Any, Dict

from azure.core.exceptions import HttpResponseError

from ..exceptions import InconsistentStateError, RemoteOperationError
from ..validation import ResourceConfig
from .base import DataSource, ResourceData

logger = logging.getLogger(__name__)


class ClientConfig(DataSource):
    type_name = "azurerm_client_config"
    display_name = "Client Config"
    config_model = ResourceConfig
    computed = {
        "client_id": "string",
        "tenant_id": "string",
        "subscription_id": "string",
        "service_principal_application_id": "string",
        "service_principal_object_id": "string",
    }

    def read(self, d: ResourceData, meta) -> bool:
        self.load_config(d)
        client_id = meta.client_id
        try:
            principals = meta.directory.list_service_principals(f"appId eq '{client_id}'")
        except HttpResponseError as exc:
            raise RemoteOperationError(
                f"Error listing Service Principals for application {client_id!r}: {exc.message}",
                status_code=exc.status_code,
            ) from exc

        if len(principals) != 1:
            raise InconsistentStateError(
                f"Expected exactly one Service Principal for application {client_id!r}, found {len(principals)}"
            )
        principal: Dict[str, Any] = principals[0]

        d.set_id(f"clientConfigs/clientId={client_id};objectId={principal.get('objectId')};"
                 f"subscriptionId={meta.subscription_id};tenantId={meta.tenant_id}")
        d.refresh({
            "client_id": client_id,
            "tenant_id": meta.tenant_id,
            "subscription_id": meta.subscription_id,
            "service_principal_application_id": principal.get("appId"),
            "service_principal_object_id": principal.get("objectId"),
        })
        return True
