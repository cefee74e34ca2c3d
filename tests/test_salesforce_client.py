"""Tests for the Salesforce REST client."""

from unittest.mock import Mock, patch

import pytest
import requests

from raintree_sync.exceptions import RecordNotFoundError, SalesforceAPIError
from raintree_sync.integrations.salesforce.client import SalesforceClient


def make_response(status_code=200, body=None, content=True):
    response = Mock()
    response.status_code = status_code
    response.content = b"{...}" if content else b""
    response.json.return_value = body
    response.text = str(body)
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def client():
    return SalesforceClient("https://partner.my.salesforce.com/", "token-123")


class TestSalesforceClientSetup:
    """Session configuration."""

    def test_headers_and_urls(self, client):
        assert client.instance_url == "https://partner.my.salesforce.com"
        assert client.session.headers["Authorization"] == "Bearer token-123"
        assert client.data_path == "/services/data/v58.0"

    def test_retries_only_reads(self, client):
        retry = client.session.get_adapter("https://partner.my.salesforce.com").max_retries
        assert retry.allowed_methods == frozenset(["GET"])
        assert retry.read == 0


class TestRequests:
    """Request/response handling."""

    def test_get_record_passes_fields_and_timeout(self, client):
        with patch.object(client.session, "request", return_value=make_response(body={"Id": "006A"})) as request:
            data = client.get_record("Opportunity", "006A", fields=["Id", "Name"])

        assert data == {"Id": "006A"}
        request.assert_called_once_with(
            "GET", "https://partner.my.salesforce.com/services/data/v58.0/sobjects/Opportunity/006A",
            params={"fields": "Id,Name"}, json=None, timeout=30.0,
        )

    def test_not_found_raises_record_not_found(self, client):
        body = [{"message": "The requested resource does not exist", "errorCode": "NOT_FOUND"}]
        with patch.object(client.session, "request", return_value=make_response(404, body)):
            with pytest.raises(RecordNotFoundError) as exc_info:
                client.get_record("Lead", "00QX")

        assert exc_info.value.status_code == 404
        assert "does not exist" in str(exc_info.value)

    def test_api_error_carries_message_and_status(self, client):
        body = [{"message": "Session expired or invalid", "errorCode": "INVALID_SESSION_ID"}]
        with patch.object(client.session, "request", return_value=make_response(401, body)):
            with pytest.raises(SalesforceAPIError) as exc_info:
                client.get_record("Lead", "00QX")

        assert not isinstance(exc_info.value, RecordNotFoundError)
        assert exc_info.value.status_code == 401
        assert "Session expired or invalid" in str(exc_info.value)

    def test_connection_error(self, client):
        with patch.object(client.session, "request", side_effect=requests.exceptions.ConnectionError("refused")):
            with pytest.raises(SalesforceAPIError, match="Request failed"):
                client.get_record("Lead", "00QX")

    def test_query_follows_pagination(self, client):
        pages = [
            make_response(body={"done": False, "nextRecordsUrl": "/services/data/v58.0/query/01g-2000",
                                "records": [{"Id": "1"}, {"Id": "2"}]}),
            make_response(body={"done": True, "records": [{"Id": "3"}]}),
        ]
        with patch.object(client.session, "request", side_effect=pages) as request:
            records = client.query("SELECT Id FROM Lead")

        assert [r["Id"] for r in records] == ["1", "2", "3"]
        assert request.call_args_list[0].kwargs["params"] == {"q": "SELECT Id FROM Lead"}
        assert request.call_args_list[1].args[1].endswith("/query/01g-2000")

    def test_update_drops_none_values(self, client):
        with patch.object(client.session, "request", return_value=make_response(204, content=False)) as request:
            result = client.update_record("Opportunity", "006A", {"Name": "Deal", "CloseDate": None})

        assert result is None
        method, url = request.call_args.args
        assert method == "PATCH"
        assert url.endswith("/sobjects/Opportunity/006A")
        assert request.call_args.kwargs["json"] == {"Name": "Deal"}

    def test_connection_check(self, client):
        with patch.object(client.session, "request", return_value=make_response(body={})):
            assert client.test_connection()["status"] == "success"

        with patch.object(client.session, "request", return_value=make_response(500, {"message": "down"})):
            result = client.test_connection()

        assert result == {"status": "error", "message": "Salesforce API error: down"}
