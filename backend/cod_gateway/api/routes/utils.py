from fastapi import APIRouter

from cod_gateway.schemas import HealthResponse

router = APIRouter(prefix="/utils", tags=["utils"])


@router.get("/health-check/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse()
