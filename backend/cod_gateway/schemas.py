from typing import List, Optional, Any, Dict
from pydantic import BaseModel

from cod_gateway.providers.base import Usage


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    stage: Optional[int] = None


class HealthResponse(BaseModel):
    status: str = "ok"


# Enhanced CoD envelope (OpenAI chat.completion shape plus CoD extras)
class CoDMetadata(BaseModel):
    reasoning_method: str = "enhanced_chain_of_draft"
    stages: int = 2
    stage1_thinking: str
    stage1_answer: str
    stage2_verification: str
    stage2_final_answer: str


class EnhancedResponse(BaseModel):
    """Enhanced CoD reply in chat.completion shape.

    The assembled final content lives at ``choices[0].message.content``
    and the reasoning method at ``cod_metadata.reasoning_method``.
    """

    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[Dict[str, Any]]
    usage: Usage
    enhanced_cod: bool = True
    cod_metadata: CoDMetadata

    @property
    def final_content(self) -> str:
        return self.choices[0]["message"]["content"]
