"""Direct (single upstream call) mode of the chat endpoint."""
import httpx
import pytest


CHAT_URL = "/api/chat"
REQUEST = {"model": "m", "messages": [{"role": "user", "content": "2+2?"}], "stream": False}


def _assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type, Authorization"


def test_direct_returns_upstream_body_verbatim(api_client, upstream):
    body = {"choices": [{"message": {"content": "4"}}]}
    upstream.respond(lambda request: httpx.Response(200, json=body))

    response = api_client.post(CHAT_URL, json=REQUEST)

    assert response.status_code == 200
    assert response.json() == body
    _assert_cors(response)
    assert upstream.call_count == 1


def test_direct_sends_bearer_credential_without_stream_accept(api_client, upstream):
    api_client.post(CHAT_URL, json=REQUEST)

    sent = upstream.requests[0]
    assert sent.method == "POST"
    assert sent.headers["authorization"] == "Bearer test-key"
    assert sent.headers["content-type"] == "application/json"
    assert "text/event-stream" not in sent.headers.get("accept", "")


def test_direct_applies_sampling_defaults(api_client, upstream):
    api_client.post(CHAT_URL, json=REQUEST)

    payload = upstream.payloads[0]
    assert payload["model"] == "m"
    assert payload["messages"] == [{"role": "user", "content": "2+2?"}]
    assert payload["temperature"] == 0.6
    assert payload["top_p"] == 1
    assert payload["top_k"] == 40
    assert payload["max_tokens"] == 4096
    assert payload["presence_penalty"] == 0
    assert payload["frequency_penalty"] == 0
    assert payload["stream"] is False
    assert "tools" not in payload


def test_explicit_zero_is_not_replaced_by_default(api_client, upstream):
    api_client.post(CHAT_URL, json={**REQUEST, "temperature": 0, "top_k": 0, "top_p": 0.5})

    payload = upstream.payloads[0]
    assert payload["temperature"] == 0
    assert payload["top_k"] == 0
    assert payload["top_p"] == 0.5


def test_tools_and_tool_choice_are_forwarded(api_client, upstream):
    tools = [{"type": "function", "function": {"name": "lookup", "parameters": {}}}]
    api_client.post(CHAT_URL, json={**REQUEST, "tools": tools, "tool_choice": "auto"})

    payload = upstream.payloads[0]
    assert payload["tools"] == tools
    assert payload["tool_choice"] == "auto"


def test_empty_tools_and_lone_tool_choice_are_dropped(api_client, upstream):
    api_client.post(CHAT_URL, json={**REQUEST, "tools": [], "tool_choice": "auto"})

    payload = upstream.payloads[0]
    assert "tools" not in payload
    assert "tool_choice" not in payload


@pytest.mark.parametrize(
    "body",
    [
        {"messages": [{"role": "user", "content": "hi"}]},
        {"model": "", "messages": [{"role": "user", "content": "hi"}]},
        {"model": "m"},
        {"model": "m", "messages": None},
        {},
    ],
)
def test_missing_required_fields_is_bad_request_without_upstream_call(api_client, upstream, body):
    response = api_client.post(CHAT_URL, json=body)

    assert response.status_code == 400
    assert response.json() == {
        "error": "Bad request",
        "message": "Missing required fields: model and messages",
    }
    _assert_cors(response)
    assert upstream.call_count == 0


def test_malformed_json_is_bad_request(api_client, upstream):
    response = api_client.post(CHAT_URL, content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json()["error"] == "Bad request"
    assert upstream.call_count == 0


def test_wrongly_typed_field_is_bad_request(api_client, upstream):
    response = api_client.post(CHAT_URL, json={**REQUEST, "temperature": "hot"})

    assert response.status_code == 400
    assert response.json()["error"] == "Bad request"
    assert upstream.call_count == 0


@pytest.mark.parametrize("status,text", [(429, '{"error": "rate limited"}'), (401, "unauthorized"), (503, "")])
def test_upstream_error_status_and_body_pass_through(api_client, upstream, status, text):
    upstream.respond(lambda request: httpx.Response(status, text=text))

    response = api_client.post(CHAT_URL, json=REQUEST)

    assert response.status_code == status
    assert response.json() == {"error": "API request failed", "message": text}
    _assert_cors(response)


def test_missing_credential_is_configuration_error(api_client, upstream, settings):
    settings.FIREWORKS_API_KEY = None

    response = api_client.post(CHAT_URL, json=REQUEST)

    assert response.status_code == 500
    assert response.json()["error"] == "Server configuration error"
    _assert_cors(response)
    assert upstream.call_count == 0


def test_transport_failure_is_internal_server_error(api_client, upstream):
    def refuse(request):
        raise httpx.ConnectError("connection refused")

    upstream.respond(refuse)

    response = api_client.post(CHAT_URL, json=REQUEST)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "message": "connection refused"}
    _assert_cors(response)


def test_options_preflight_returns_empty_success(api_client, upstream):
    response = api_client.options(CHAT_URL)

    assert response.status_code == 200
    assert response.content == b""
    _assert_cors(response)
    assert upstream.call_count == 0


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
def test_other_methods_are_not_allowed(api_client, upstream, method):
    response = api_client.request(method, CHAT_URL)

    assert response.status_code == 405
    assert response.json()["error"] == "Method not allowed"
    _assert_cors(response)
    assert upstream.call_count == 0


@pytest.mark.parametrize("method", ["TRACE", "PURGE"])
def test_unrouted_methods_use_gateway_error_shape(api_client, upstream, method):
    response = api_client.request(method, CHAT_URL)

    assert response.status_code == 405
    body = response.json()
    assert body["error"] == "Method not allowed"
    assert method in body["message"]
    assert "detail" not in body
    _assert_cors(response)
    assert upstream.call_count == 0


def test_null_stream_and_enhanced_flags_mean_plain_direct(api_client, upstream):
    upstream.respond_with(httpx.Response(200, json={"id": "x"}))

    response = api_client.post(CHAT_URL, json={**REQUEST, "stream": None, "enhanced_cod_mode": None})

    assert response.status_code == 200
    assert response.json() == {"id": "x"}
    assert upstream.payloads[0]["stream"] is False
    assert upstream.call_count == 1


def test_error_bodies_are_documented(api_client):
    schema = api_client.get("/api/openapi.json").json()

    assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {"error", "message", "stage"}
    responses = schema["paths"]["/api/chat"]["post"]["responses"]
    for status in ("400", "405", "500"):
        assert responses[status]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


def test_response_carries_request_id(api_client):
    response = api_client.post(CHAT_URL, json=REQUEST, headers={"X-Request-ID": "req-123"})

    assert response.headers["x-request-id"] == "req-123"


def test_health_check(api_client):
    response = api_client.get("/api/utils/health-check/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
