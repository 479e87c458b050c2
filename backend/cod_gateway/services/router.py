from enum import Enum

from cod_gateway.providers.base import ChatRequest


class RequestMode(str, Enum):
    DIRECT = "direct"
    STAGED = "staged"


def resolve_mode(req: ChatRequest) -> RequestMode:
    """
    Pick the handling path once, before any upstream call.
    Staged (Enhanced CoD) wins over streaming: staged calls are always buffered.
    """
    if req.enhanced_cod_mode:
        return RequestMode.STAGED
    return RequestMode.DIRECT
