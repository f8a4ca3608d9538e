"""
Tests for the extraction backends and LLM output parsing, using fake HTTP sessions.

Run with: pytest tests/test_backends.py -v
"""

import pytest
import requests

from quickcompare.core.llm_engine import html_to_text, parse_json_from_llm_output
from quickcompare.core.retry_utils import PermanentError, TransientError
from quickcompare.extraction.adapter import ExtractionAdapter
from quickcompare.extraction.backends import FirecrawlBackend, OllamaBackend, get_extraction_backend
from quickcompare.models.platform import Platform

from conftest import FakeBackend

ZEPTO = Platform(id="zepto", name="Zepto")
PRODUCTS = {"products": [{"product_name": "Amul Butter", "price": 56, "out_of_stock": False}]}


def make_request():
    return ExtractionAdapter(FakeBackend()).build_request(ZEPTO, "butter", "560001")


class FakeResponse:

    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self):
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        return self._next()

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._next()


class FakeOllamaClient:

    def __init__(self, content):
        self.content = content
        self.calls = []

    def chat(self, **kwargs):
        self.calls.append(kwargs)
        return {"message": {"content": self.content}}


def firecrawl(*responses):
    session = FakeSession(*responses)
    return FirecrawlBackend(api_key="fc-test", api_base="https://fc.test/v1", poll_interval=0, session=session), session


class TestFirecrawlBackend:

    def test_synchronous_response(self):
        backend, session = firecrawl(FakeResponse(body={"success": True, "data": PRODUCTS}))

        assert backend.extract(make_request()) == PRODUCTS

        method, url, kwargs = session.calls[0]
        assert (method, url) == ("POST", "https://fc.test/v1/extract")
        assert kwargs["json"]["urls"] == ["https://www.zepto.in/search?q=butter"]
        assert kwargs["json"]["scrapeOptions"] == {"headers": {"Cookie": "location=560001"}}
        assert kwargs["headers"]["Authorization"] == "Bearer fc-test"

    def test_polls_job_until_completed(self):
        backend, session = firecrawl(
            FakeResponse(body={"success": True, "id": "job-1"}),
            FakeResponse(body={"success": True, "status": "processing"}),
            FakeResponse(body={"success": True, "status": "completed", "data": PRODUCTS}),
        )

        assert backend.extract(make_request()) == PRODUCTS
        assert [c[1] for c in session.calls[1:]] == ["https://fc.test/v1/extract/job-1"] * 2

    def test_failed_job_is_permanent(self):
        backend, _ = firecrawl(
            FakeResponse(body={"success": True, "id": "job-2"}),
            FakeResponse(body={"success": False, "status": "failed", "error": "blocked"}),
        )

        with pytest.raises(PermanentError, match="blocked"):
            backend.extract(make_request())

    def test_unsuccessful_submit_is_permanent(self):
        backend, _ = firecrawl(FakeResponse(body={"success": False, "error": "invalid url"}))

        with pytest.raises(PermanentError, match="invalid url"):
            backend.extract(make_request())

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_throttling_and_server_errors_are_transient(self, status):
        backend, _ = firecrawl(FakeResponse(status_code=status, text="busy"))

        with pytest.raises(TransientError):
            backend.extract(make_request())

    def test_client_error_is_permanent(self):
        backend, _ = firecrawl(FakeResponse(status_code=401, text="Unauthorized"))

        with pytest.raises(PermanentError, match="401"):
            backend.extract(make_request())

    def test_connection_error_is_transient(self):
        backend, _ = firecrawl(requests.ConnectionError("reset by peer"))

        with pytest.raises(TransientError):
            backend.extract(make_request())

    def test_non_json_response_is_permanent(self):
        backend, _ = firecrawl(FakeResponse(body=None, text="<html></html>"))

        with pytest.raises(PermanentError):
            backend.extract(make_request())

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr("quickcompare.extraction.backends.FIRECRAWL_API_KEY", "")
        session = FakeSession()
        backend = FirecrawlBackend(api_key="", session=session)

        with pytest.raises(PermanentError, match="FIRECRAWL_API_KEY"):
            backend.extract(make_request())
        assert session.calls == []

    def test_deadline_exceeded_is_transient(self):
        session = FakeSession(FakeResponse(body={"success": True, "id": "job-3"}))
        backend = FirecrawlBackend(api_key="fc-test", timeout=0, poll_interval=0, session=session)

        with pytest.raises(TransientError, match="deadline"):
            backend.extract(make_request())


class TestOllamaBackend:

    PAGE = """<html><head><title>Zepto</title><script>var x = 1;</script></head>
    <body><div>Amul Butter</div><div>100 g</div><div>&#8377;56</div></body></html>"""

    def test_extracts_from_page_text(self):
        session = FakeSession(FakeResponse(text=self.PAGE))
        client = FakeOllamaClient('```json\n{"products": [{"product_name": "Amul Butter", "price": 56}]}\n```')
        backend = OllamaBackend(model="test-model", session=session, client=client)

        payload = backend.extract(make_request())

        assert payload == {"products": [{"product_name": "Amul Butter", "price": 56}]}
        assert session.calls[0][2]["headers"]["Cookie"] == "location=560001"
        chat = client.calls[0]
        assert chat["model"] == "test-model"
        assert chat["format"]["required"] == ["products"]
        assert "Amul Butter" in chat["messages"][1]["content"]
        assert "var x" not in chat["messages"][1]["content"]

    def test_page_server_error_is_transient(self):
        backend = OllamaBackend(session=FakeSession(FakeResponse(status_code=502)), client=FakeOllamaClient("{}"))

        with pytest.raises(TransientError):
            backend.extract(make_request())

    def test_page_forbidden_is_permanent(self):
        backend = OllamaBackend(session=FakeSession(FakeResponse(status_code=403)), client=FakeOllamaClient("{}"))

        with pytest.raises(PermanentError):
            backend.extract(make_request())

    def test_non_json_answer_is_permanent(self):
        backend = OllamaBackend(
            session=FakeSession(FakeResponse(text=self.PAGE)),
            client=FakeOllamaClient("I could not find any products.")
        )

        with pytest.raises(PermanentError, match="malformed"):
            backend.extract(make_request())


class TestLlmParsing:

    def test_plain_json(self):
        assert parse_json_from_llm_output('{"products": []}') == {"products": []}

    def test_think_tags_and_fences(self):
        text = '<think>looking at page</think>\n```json\n[{"name": "Milk", "price": 30}]\n```'
        assert parse_json_from_llm_output(text) == [{"name": "Milk", "price": 30}]

    def test_json_wrapped_in_prose(self):
        text = 'Here are the products: {"products": [{"name": "Eggs", "price": 72}]} Hope this helps!'
        assert parse_json_from_llm_output(text) == {"products": [{"name": "Eggs", "price": 72}]}

    def test_no_json(self):
        assert parse_json_from_llm_output("no products here") is None

    def test_html_to_text(self):
        text = html_to_text("<style>p{}</style><p>Toor Dal</p><p>&#8377;145 <b>1 kg</b></p>")
        assert text == "Toor Dal\n₹145\n1 kg"

    def test_html_to_text_quoted_angle_bracket(self):
        assert html_to_text('<div data-x="a>b">Amul Milk</div>') == "Amul Milk"

    def test_html_to_text_drops_head_and_comments(self):
        page = "<html><head><title>Zepto</title></head><body><!-- promo --><span>Eggs</span></body></html>"
        assert html_to_text(page) == "Eggs"

    def test_html_to_text_truncates(self):
        assert len(html_to_text("<p>" + "a" * 100 + "</p>", max_chars=10)) == 10


class TestBackendFactory:

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown extraction backend"):
            get_extraction_backend("scrapy")

    def test_firecrawl_backend(self):
        assert isinstance(get_extraction_backend("Firecrawl"), FirecrawlBackend)
