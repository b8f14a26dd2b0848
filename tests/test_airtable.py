"""Tests for app.services.airtable against a mocked Airtable REST API."""

import asyncio
import json

import httpx

from app.services.airtable import AirtableClient, match_formula
from app.services.result import Err, Ok


def _client(handler) -> AirtableClient:
    return AirtableClient("key", "appBASE", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestMatchFormula:
    def test_string_value_is_quoted(self):
        assert match_formula("id", "abc") == "{id}='abc'"

    def test_quotes_are_escaped(self):
        assert match_formula("name", "O'Brien") == "{name}='O\\'Brien'"

    def test_numbers_are_bare(self):
        assert match_formula("id", 42) == "{id}=42"


class TestFindRecord:
    def test_queries_exact_match_with_single_result(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url).split("?")[0]
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers["authorization"]
            return httpx.Response(200, json={"records": [{"id": "rec1", "fields": {"id": 42}}]})

        result = asyncio.run(_client(handler).find_record("Product Submissions", "id", 42))
        assert result == Ok({"id": "rec1", "fields": {"id": 42}})
        assert seen["url"] == "https://api.airtable.com/v0/appBASE/Product%20Submissions"
        assert seen["params"] == {"filterByFormula": "{id}=42", "maxRecords": "1"}
        assert seen["auth"] == "Bearer key"

    def test_no_match_is_none(self):
        result = asyncio.run(_client(lambda r: httpx.Response(200, json={"records": []})).find_record("T", "id", 1))
        assert result == Ok(None)

    def test_http_error_becomes_err(self):
        result = asyncio.run(_client(lambda r: httpx.Response(422, text="bad")).find_record("T", "id", 1))
        assert isinstance(result, Err)
        assert result.kind == "http_error"


class TestWrites:
    def test_create_record_sends_typecast_batch(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"records": [{"id": "rec9", "fields": {"id": 1}}]})

        result = asyncio.run(_client(handler).create_record("Payments", {"id": 1}))
        assert result == Ok({"id": "rec9", "fields": {"id": 1}})
        assert seen == {"method": "POST", "body": {"records": [{"fields": {"id": 1}}], "typecast": True}}

    def test_update_record_targets_record_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"records": [{"id": "rec1", "fields": {}}]})

        asyncio.run(_client(handler).update_record("Payments", "rec1", {"status": "paid"}))
        assert seen["method"] == "PATCH"
        assert seen["body"]["records"] == [{"id": "rec1", "fields": {"status": "paid"}}]

    def test_network_error_becomes_err(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = asyncio.run(_client(handler).create_record("Payments", {"id": 1}))
        assert isinstance(result, Err)
        assert result.kind == "network"
