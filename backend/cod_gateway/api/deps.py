from typing import Annotated

from fastapi import Depends

from cod_gateway.core.config import Settings, get_settings
from cod_gateway.providers.fireworks import FireworksClient


def get_upstream_client(settings: Annotated[Settings, Depends(get_settings)]) -> FireworksClient:
    return FireworksClient.from_settings(settings)


SettingsDep = Annotated[Settings, Depends(get_settings)]
UpstreamDep = Annotated[FireworksClient, Depends(get_upstream_client)]
