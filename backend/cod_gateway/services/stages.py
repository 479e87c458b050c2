from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from cod_gateway.core.errors import GatewayError
from cod_gateway.providers.base import STAGE_DEFAULTS, ChatRequest, Usage, build_payload
from cod_gateway.providers.fireworks import FireworksClient
from cod_gateway.services.prompts import SEPARATOR

logger = structlog.get_logger()


class StageResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    content: str = ""
    thinking: str = ""
    answer: str = ""
    usage: Optional[Usage] = None
    model: Optional[str] = None
    response_id: Optional[str] = None
    error: Optional[str] = None


def split_sections(text: str, placeholder: str) -> Tuple[str, str]:
    """Split model output on the first separator into (reasoning, answer).

    Without a separator the whole text is the reasoning and ``placeholder``
    stands in for the answer; an empty answer after the separator is
    replaced the same way.
    """
    before, sep, after = text.partition(SEPARATOR)
    if not sep:
        return text.strip(), placeholder
    return before.strip(), after.strip() or placeholder


def coerce_content(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "\n".join(parts)
    return str(content)


def without_system_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [m for m in messages if m.get("role") != "system"]


def _extract_content(data: Dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if not choices:
        raise ValueError("upstream response has no choices")
    message = choices[0].get("message") or {}
    return coerce_content(message.get("content"))


class StageRunner:
    """Runs one non-streaming reasoning stage against the upstream provider."""

    def __init__(self, client: FireworksClient, request: ChatRequest, model: Optional[str] = None):
        self.client = client
        self.request = request
        self.model = model

    async def run_stage(
        self,
        system_prompt: str,
        history: List[Dict[str, Any]],
        *,
        placeholder: str,
        max_tokens_cap: int,
        temperature: Optional[float] = None,
        label: str = "stage",
    ) -> StageResult:
        messages = [{"role": "system", "content": system_prompt}, *without_system_messages(history)]
        payload = build_payload(
            self.request,
            defaults=STAGE_DEFAULTS,
            messages=messages,
            model=self.model,
            stream=False,
            temperature=temperature,
            max_tokens_cap=max_tokens_cap,
            include_tools=False,
        )
        logger.info(
            "Running stage",
            stage=label,
            model=payload.model,
            temperature=payload.temperature,
            max_tokens=payload.max_tokens,
        )
        try:
            data = await self.client.complete(payload)
            content = _extract_content(data)
            thinking, answer = split_sections(content, placeholder)
            result = StageResult(
                success=True,
                content=content,
                thinking=thinking,
                answer=answer,
                usage=Usage.from_upstream(data.get("usage")),
                model=data.get("model"),
                response_id=data.get("id"),
            )
        except GatewayError as e:
            return StageResult(success=False, error=f"{e.error} ({e.status_code}): {e.message}")
        except (httpx.HTTPError, ValidationError, ValueError, TypeError, AttributeError) as e:
            logger.error("Stage call failed", stage=label, error=str(e))
            return StageResult(success=False, error=str(e) or e.__class__.__name__)

        logger.info("Stage finished", stage=label, usage=result.usage.model_dump() if result.usage else None)
        return result
