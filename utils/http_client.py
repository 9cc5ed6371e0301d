"""HTTP client with retries, used by webhook channels, HTTP metric sources and scalers."""
import time
import logging
import requests

from models.errors import AdapterError

logger = logging.getLogger("opsmonitor.http")


class APIError(AdapterError):
    """HTTP request error with status code and response body."""
    def __init__(self, message, status_code=None, response_body=None, source=None):
        super().__init__(message, adapter=source)
        self.status_code = status_code
        self.response_body = response_body
        self.source = source


class HTTPClient:
    """Thin requests.Session wrapper with retry on transient statuses."""

    RETRYABLE_STATUS = {429, 500, 502, 503, 504}
    NON_RETRYABLE_STATUS = {400, 401, 403, 404, 405, 409, 422}

    def __init__(self, base_url="", timeout=10, max_retries=2, backoff=0.5, headers=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "OpsMonitor/1.0"})
        if headers:
            self.session.headers.update(headers)

    def get(self, path="", params=None):
        return self._request("GET", path, params=params)

    def post(self, path="", payload=None):
        return self._request("POST", path, json=payload)

    def _url(self, path):
        if path.startswith(("http://", "https://")):
            return path
        if not path:
            return self.base_url
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method, path, **kwargs):
        url = self._url(path)
        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                start = time.time()
                resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
                latency = int((time.time() - start) * 1000)
                logger.debug(f"{method} {url} -> {resp.status_code} ({latency}ms)")

                if 200 <= resp.status_code < 300:
                    if not resp.content:
                        return None
                    try:
                        return resp.json()
                    except ValueError:
                        return resp.text

                if resp.status_code in self.RETRYABLE_STATUS:
                    retry_after = resp.headers.get("Retry-After")
                    wait = float(retry_after) if retry_after else self.backoff * (2 ** attempt)
                    logger.warning(f"Retryable {resp.status_code} from {url}, attempt {attempt + 1}")
                    last_error = APIError(f"HTTP {resp.status_code} from {url}",
                                          status_code=resp.status_code, source=url)
                    if attempt < self.max_retries:
                        time.sleep(wait)
                    continue

                raise APIError(
                    f"HTTP {resp.status_code} from {url}",
                    status_code=resp.status_code,
                    response_body=resp.text,
                    source=url,
                )

            except requests.exceptions.RequestException as e:
                logger.warning(f"Request error for {url}: {e} (attempt {attempt + 1})")
                last_error = APIError(f"Request to {url} failed: {e}", source=url)
                if attempt < self.max_retries:
                    time.sleep(self.backoff * (2 ** attempt))

        raise last_error or APIError(f"Max retries exceeded for {url}", source=url)
