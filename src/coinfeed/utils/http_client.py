import requests
from requests.exceptions import HTTPError
from typing import Any, Dict, Mapping, Optional

from coinfeed.utils.logger import PipelineLogger, get_logger

class HttpClient:
    """
    Thin wrapper around a `requests.Session` with a strict success contract.

    A status in [200, 300) is success. Anything else is logged and raised as
    `requests.exceptions.HTTPError` (the response stays attached, so callers
    can branch on `error.response.status_code`). Connection faults, DNS
    failures and timeouts surface as the underlying `RequestException`.

    No retries happen here: the retry policy belongs to the caller, which
    knows whether a 403 means "try again" or "skip this date".

    Attributes:
        timeout (float): Per-request timeout in seconds.
        session (requests.Session): The pooled HTTP session.
    """

    def __init__(self, timeout: float = 30, headers: Optional[Mapping[str, str]] = None,
                 session: Optional[requests.Session] = None,
                 log: Optional[PipelineLogger] = None) -> None:
        self.timeout: float = timeout
        self.session: requests.Session = session or requests.Session()
        if headers:
            self.session.headers.update(headers)
        self.log = log or get_logger("HttpClient")

    def get(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Sends a GET request and returns the body text.

        Raises:
            HTTPError: If the status code is outside [200, 300).
            requests.exceptions.RequestException: On transport faults.
        """
        response = self.session.get(
            url, params=params, headers={"Accept": "application/json"}, timeout=self.timeout
        )
        self._check(response)
        return response.text

    def post(self, url: str, body: str) -> requests.Response:
        """
        Sends a POST request with a JSON body and returns the response.

        Raises:
            HTTPError: If the status code is outside [200, 300).
            requests.exceptions.RequestException: On transport faults.
        """
        response = self.session.post(
            url, data=body.encode("utf-8"),
            headers={"Content-Type": "application/json"}, timeout=self.timeout
        )
        self._check(response)
        return response

    def _check(self, response: requests.Response) -> None:
        if 200 <= response.status_code < 300:
            return
        self.log.error(f"HTTP {response.status_code} from {response.url}: {response.text[:500]}")
        raise HTTPError(
            f"HTTP request failed with status code: {response.status_code}", response=response
        )

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
