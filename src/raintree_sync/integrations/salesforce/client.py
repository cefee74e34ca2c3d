"""Salesforce REST API client for record read/update operations."""

import logging
from typing import List, Optional, Dict, Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ...exceptions import SalesforceAPIError, RecordNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "v58.0"
DEFAULT_TIMEOUT = 30.0


class SalesforceClient:
    """Client for interacting with one Salesforce org's REST API."""

    def __init__(self, instance_url: str, access_token: str,
                 api_version: str = DEFAULT_API_VERSION, timeout: float = DEFAULT_TIMEOUT):
        """Initialize the Salesforce client.

        Args:
            instance_url: Org instance URL, e.g. https://na1.my.salesforce.com
            access_token: OAuth access token for the org
            api_version: REST API version
            timeout: Per-request timeout in seconds
        """
        self.instance_url = instance_url.rstrip('/')
        self.api_version = api_version
        self.timeout = timeout

        # Reads retry on connect errors and throttling; a read timeout is
        # surfaced immediately and retried on the next pass instead.
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            read=0,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=frozenset(["GET"]),
            backoff_factor=1,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json',
            'User-Agent': 'Raintree-Partner-Sync/0.1.0'
        })

    @property
    def data_path(self) -> str:
        return f"/services/data/{self.api_version}"

    def _make_request(self, method: str, endpoint: str, params: Optional[Dict[str, Any]] = None,
                      data: Optional[Dict[str, Any]] = None) -> Any:
        """Make a request to the Salesforce API.

        Args:
            method: HTTP method
            endpoint: API path, relative to the instance URL
            params: Query parameters
            data: JSON request body

        Returns:
            Decoded JSON response, or None for empty (204) responses

        Raises:
            RecordNotFoundError: If the API answers 404
            SalesforceAPIError: For any other failed request
        """
        url = f"{self.instance_url}{endpoint}"

        try:
            logger.debug(f"Making {method} request to {url} with params: {params}")
            response = self.session.request(method, url, params=params, json=data, timeout=self.timeout)
            response.raise_for_status()

            if response.content:
                return response.json()
            return None

        except requests.exceptions.RequestException as e:
            response = getattr(e, 'response', None)
            if response is None:
                logger.error(f"Salesforce API request failed: {e}")
                raise SalesforceAPIError(f"Request failed: {str(e)}") from e

            message = _error_message(response)
            if response.status_code == 404:
                raise RecordNotFoundError(f"Not found: {message}", status_code=404) from e

            logger.error(f"Salesforce API request failed: HTTP {response.status_code}: {message}")
            raise SalesforceAPIError(f"Salesforce API error: {message}",
                                     status_code=response.status_code) from e

    def query(self, soql: str) -> List[Dict[str, Any]]:
        """Run a SOQL query, following pagination.

        Args:
            soql: SOQL query string

        Returns:
            All matching records
        """
        logger.debug(f"Running SOQL query: {soql}")
        data = self._make_request('GET', f"{self.data_path}/query", params={'q': soql})
        records = list(data.get('records', []))

        while not data.get('done', True) and data.get('nextRecordsUrl'):
            data = self._make_request('GET', data['nextRecordsUrl'])
            records.extend(data.get('records', []))

        return records

    def get_record(self, sobject: str, record_id: str, fields: Optional[List[str]] = None) -> Dict[str, Any]:
        """Fetch a single record by id.

        Raises:
            RecordNotFoundError: If no record exists with this id
        """
        params = {'fields': ','.join(fields)} if fields else None
        return self._make_request('GET', f"{self.data_path}/sobjects/{sobject}/{record_id}", params=params)

    def update_record(self, sobject: str, record_id: str, fields: Dict[str, Any]) -> None:
        """Update a record; None values are left out of the request body.

        Salesforce answers a successful PATCH with 204 No Content.
        """
        clean_data = {key: value for key, value in fields.items() if value is not None}
        logger.debug(f"Updating {sobject} {record_id} with fields: {sorted(clean_data)}")
        self._make_request('PATCH', f"{self.data_path}/sobjects/{sobject}/{record_id}", data=clean_data)

    def test_connection(self) -> Dict[str, Any]:
        """Test connection to the Salesforce API.

        Returns:
            Connection test result
        """
        try:
            self._make_request('GET', f"{self.data_path}/limits")
            return {"status": "success", "message": f"Connected to {self.instance_url}"}
        except SalesforceAPIError as e:
            return {"status": "error", "message": str(e)}


def _error_message(response: requests.Response) -> str:
    """Pull the message out of a Salesforce error body.

    Errors come back as ``[{"message": ..., "errorCode": ...}]``.
    """
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text}"

    if isinstance(body, list) and body and isinstance(body[0], dict):
        return body[0].get('message') or str(body)
    if isinstance(body, dict):
        return body.get('message') or body.get('error_description') or str(body)
    return str(body)
