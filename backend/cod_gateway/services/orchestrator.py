"""Enhanced Chain-of-Draft: two sequential upstream calls joined into one answer.

Stage 1 drafts the reasoning with three deep reflections and a preliminary
answer. Stage 2 receives the original question plus Stage 1's output and
verifies it. Either stage failing fails the whole request; nothing from a
finished Stage 1 is returned on its own.
"""
import time
import uuid
from typing import Any, Dict, List, Optional

import structlog

from cod_gateway.core.errors import StageFailedError
from cod_gateway.observability import COD_STAGE_FAILURES
from cod_gateway.providers.base import STAGE_DEFAULTS, ChatRequest, Usage
from cod_gateway.providers.fireworks import FireworksClient
from cod_gateway.schemas import CoDMetadata, EnhancedResponse
from cod_gateway.services import prompts
from cod_gateway.services.stages import StageResult, StageRunner, coerce_content

logger = structlog.get_logger()

STAGE1_MAX_TOKENS = 12000
STAGE2_MAX_TOKENS = 8192
STAGE2_TEMPERATURE_SCALE = 0.7
STAGE2_MIN_TEMPERATURE = 0.1


def stage2_temperature(requested: Optional[float]) -> float:
    effective = STAGE_DEFAULTS.temperature if requested is None else requested
    return max(STAGE2_MIN_TEMPERATURE, effective * STAGE2_TEMPERATURE_SCALE)


def last_user_message(messages: List[Dict[str, Any]]) -> str:
    for message in reversed(messages):
        if message.get("role") == "user":
            return coerce_content(message.get("content"))
    return ""


def assemble_final_content(stage1: StageResult, stage2: StageResult) -> str:
    return "\n\n".join(
        [
            stage1.thinking,
            prompts.VERIFICATION_BANNER,
            stage2.thinking,
            prompts.SEPARATOR,
            stage2.answer,
        ]
    )


class EnhancedCoDOrchestrator:
    def __init__(self, client: FireworksClient, request: ChatRequest, model: Optional[str] = None):
        self.request = request
        self.runner = StageRunner(client, request, model=model)

    def _fail(self, stage: int, name: str, result: StageResult) -> StageFailedError:
        COD_STAGE_FAILURES.labels(str(stage)).inc()
        logger.error("Enhanced CoD stage failed", stage=stage, stage_name=name, error=result.error)
        return StageFailedError(stage, name, result.error or "unknown error")

    async def run(self) -> EnhancedResponse:
        history = [m.model_dump(exclude_unset=True) for m in self.request.messages or []]

        stage1 = await self.runner.run_stage(
            prompts.STAGE1_SYSTEM_PROMPT,
            history,
            placeholder=prompts.STAGE1_MISSING_ANSWER,
            max_tokens_cap=STAGE1_MAX_TOKENS,
            label="stage1",
        )
        if not stage1.success:
            raise self._fail(1, prompts.STAGE1_NAME, stage1)

        review = prompts.stage2_user_message(last_user_message(history), stage1.thinking, stage1.answer)
        stage2 = await self.runner.run_stage(
            prompts.STAGE2_SYSTEM_PROMPT,
            [{"role": "user", "content": review}],
            placeholder=prompts.STAGE2_MISSING_ANSWER,
            max_tokens_cap=STAGE2_MAX_TOKENS,
            temperature=stage2_temperature(self.request.temperature),
            label="stage2",
        )
        if not stage2.success:
            raise self._fail(2, prompts.STAGE2_NAME, stage2)

        return EnhancedResponse(
            id=stage2.response_id or f"cod-{uuid.uuid4().hex}",
            created=int(time.time()),
            model=stage2.model or self.runner.model or self.request.model or "",
            choices=[
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": assemble_final_content(stage1, stage2)},
                    "finish_reason": "stop",
                }
            ],
            usage=Usage.merge(stage1.usage, stage2.usage),
            cod_metadata=CoDMetadata(
                stage1_thinking=stage1.thinking,
                stage1_answer=stage1.answer,
                stage2_verification=stage2.thinking,
                stage2_final_answer=stage2.answer,
            ),
        )
