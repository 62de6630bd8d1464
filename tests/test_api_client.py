import httpx
import pytest

from clinic.api.client import DEFAULT_ERROR, ApiClient
from clinic.errors import ApiError


def _client(handler, **kwargs):
    return ApiClient("http://clinic.test/api/", transport=httpx.MockTransport(handler), **kwargs)


def test_paths_are_joined_under_base_url():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, json=[])

    with _client(handler) as api:
        api.get("/client")
        api.get("bien", params={"type": "PRODUIT"})
    assert seen == ["http://clinic.test/api/client", "http://clinic.test/api/bien?type=PRODUIT"]


@pytest.mark.parametrize(
    "response, expected",
    [
        (httpx.Response(400, json={"message": "CIN déjà utilisé"}), "CIN déjà utilisé"),
        (httpx.Response(422, json={"message": ["nom requis", "prix invalide"]}), "nom requis, prix invalide"),
        (httpx.Response(404, json={"error": "Introuvable"}), "Introuvable"),
        (httpx.Response(500, text="Internal Server Error"), "Internal Server Error"),
        (httpx.Response(502), f"{DEFAULT_ERROR} (HTTP 502)"),
    ],
)
def test_error_messages(response, expected):
    with _client(lambda request: response) as api:
        with pytest.raises(ApiError) as exc:
            api.delete("client/1")
    assert exc.value.message == expected
    assert exc.value.status_code == response.status_code
    assert exc.value.path == "client/1"


def test_network_failure_becomes_api_error():
    def handler(request):
        raise httpx.ConnectError("connexion refusée", request=request)

    with _client(handler) as api:
        with pytest.raises(ApiError) as exc:
            api.get("client")
    assert exc.value.status_code is None
    assert exc.value.message.startswith(DEFAULT_ERROR)


def test_empty_and_text_bodies():
    responses = iter([httpx.Response(204), httpx.Response(200, text="ok")])
    with _client(lambda request: next(responses)) as api:
        assert api.delete("bien/3") is None
        assert api.get("health") == "ok"


def test_token_header_and_json_body():
    captured = {}

    def handler(request):
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = request.content
        return httpx.Response(201, json={"id": 9})

    with _client(handler, token_provider=lambda: "abc") as api:
        assert api.post("client", {"nom": "Bennani"}) == {"id": 9}
    assert captured["auth"] == "Bearer abc"
    assert b'"nom"' in captured["body"]


def test_multipart_when_files_given():
    captured = {}

    def handler(request):
        captured["type"] = request.headers["content-type"]
        return httpx.Response(201, json={"id": 1})

    with _client(handler) as api:
        api.post("scanned-document", data={"title": "Radio"},
                 files={"file": ("radio.pdf", b"%PDF", "application/pdf")})
    assert captured["type"].startswith("multipart/form-data")
