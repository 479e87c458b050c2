from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    # Tool-call fields (name, tool_calls, tool_call_id) ride along untouched
    model_config = ConfigDict(extra="allow")

    role: str  # "system" | "user" | "assistant" | "tool"
    content: Any = None


class ChatRequest(BaseModel):
    """Inbound chat-completion request; required fields are checked by the gateway."""

    model_config = ConfigDict(extra="ignore")

    model: Optional[str] = None
    messages: Optional[List[ChatMessage]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_tokens: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    stream: Optional[bool] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Any] = None
    enhanced_cod_mode: Optional[bool] = None

    def missing_required_fields(self) -> bool:
        return not self.model or self.messages is None

    @property
    def tools_enabled(self) -> bool:
        return bool(self.tools)


class SamplingDefaults(BaseModel):
    """Values substituted for sampling fields the caller left unset (``None`` only)."""

    model_config = ConfigDict(frozen=True)

    temperature: float = 0.6
    top_p: float = 1
    top_k: int = 40
    max_tokens: int = 4096
    presence_penalty: float = 0
    frequency_penalty: float = 0


DIRECT_DEFAULTS = SamplingDefaults()
STAGE_DEFAULTS = SamplingDefaults(max_tokens=8192)


class UpstreamPayload(BaseModel):
    """The normalized body actually POSTed to the inference provider."""

    model: str
    messages: List[Dict[str, Any]]
    temperature: float
    top_p: float
    top_k: int
    max_tokens: int
    presence_penalty: float
    frequency_penalty: float
    stream: bool = False
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Any] = None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def _pick(value, default):
    return default if value is None else value


def build_payload(
    req: ChatRequest,
    *,
    defaults: SamplingDefaults = DIRECT_DEFAULTS,
    messages: Optional[List[Dict[str, Any]]] = None,
    model: Optional[str] = None,
    stream: Optional[bool] = None,
    temperature: Optional[float] = None,
    max_tokens_cap: Optional[int] = None,
    include_tools: bool = True,
) -> UpstreamPayload:
    """Apply defaults and per-call overrides to ``req`` in one place."""
    max_tokens = _pick(req.max_tokens, defaults.max_tokens)
    if max_tokens_cap is not None:
        max_tokens = min(max_tokens, max_tokens_cap)

    if messages is None:
        messages = [m.model_dump(exclude_unset=True) for m in req.messages or []]

    payload = UpstreamPayload(
        model=model or req.model or "",
        messages=messages,
        temperature=_pick(temperature, _pick(req.temperature, defaults.temperature)),
        top_p=_pick(req.top_p, defaults.top_p),
        top_k=_pick(req.top_k, defaults.top_k),
        max_tokens=max_tokens,
        presence_penalty=_pick(req.presence_penalty, defaults.presence_penalty),
        frequency_penalty=_pick(req.frequency_penalty, defaults.frequency_penalty),
        stream=bool(req.stream) if stream is None else stream,
    )
    if include_tools and req.tools:
        payload.tools = req.tools
        if req.tool_choice:
            payload.tool_choice = req.tool_choice
    return payload


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_upstream(cls, raw: Optional[Dict[str, Any]]) -> Optional["Usage"]:
        if not raw:
            return None
        return cls(
            prompt_tokens=raw.get("prompt_tokens") or 0,
            completion_tokens=raw.get("completion_tokens") or 0,
            total_tokens=raw.get("total_tokens") or 0,
        )

    @classmethod
    def merge(cls, *parts: Optional["Usage"]) -> "Usage":
        # absent usage counts as all-zero
        merged = cls()
        for part in parts:
            if part is None:
                continue
            merged.prompt_tokens += part.prompt_tokens
            merged.completion_tokens += part.completion_tokens
            merged.total_tokens += part.total_tokens
        return merged
