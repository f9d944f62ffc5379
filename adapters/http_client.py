"""HTTP primitives shared by the vendor adapters and the catalog reader."""
import logging
import time
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

import requests

from adapters.errors import Unreachable

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36'
)

RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class CookieTrail:
    """Append-only, ordered set of ``name=value`` cookie pairs.

    Each hop of a login sequence returns a new trail that contains every
    cookie seen so far, so a cookie set at an intermediate redirect is never
    lost.
    """
    pairs: Tuple[str, ...] = ()

    @classmethod
    def from_header(cls, header: Optional[str]) -> 'CookieTrail':
        """Rebuild a trail from a stored cookie header string."""
        if not header:
            return cls()
        return cls().extend(part.strip() for part in header.split(';'))

    def extend(self, pairs: Iterable[str]) -> 'CookieTrail':
        """Return a new trail with any unseen pairs appended."""
        merged = list(self.pairs)
        for pair in pairs:
            if pair and '=' in pair and pair not in merged:
                merged.append(pair)
        return CookieTrail(tuple(merged))

    def absorb(self, response: requests.Response) -> 'CookieTrail':
        """
        Return a new trail including cookies set by a response.

        Cookies from intermediate redirects (``response.history``) are
        included as well as those from the final response.

        Args:
            response: Response whose Set-Cookie headers should be harvested

        Returns:
            New CookieTrail
        """
        harvested = []
        for hop in list(response.history) + [response]:
            for cookie in hop.cookies:
                harvested.append(f"{cookie.name}={cookie.value}")
        return self.extend(harvested)

    def header(self) -> str:
        """Render the trail as a Cookie request header value."""
        return '; '.join(self.pairs)

    def __bool__(self) -> bool:
        return bool(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)


class VendorHttpClient:
    """Thin wrapper around requests with timeouts and retry logic.

    Cookies are always passed explicitly as a header so that no hidden cookie
    jar carries state between unrelated calls.
    """

    MAX_RETRIES = 3
    BASE_DELAY = 1  # seconds

    def __init__(self, timeout: int = 30, user_agent: str = BROWSER_USER_AGENT):
        """
        Initialize the client.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            user_agent: User-Agent header sent with every request
        """
        self.timeout = timeout
        self.user_agent = user_agent

    def _headers(self, headers: Optional[Dict[str, str]],
                 cookies: Optional[CookieTrail]) -> Dict[str, str]:
        merged = {'User-Agent': self.user_agent}
        if headers:
            merged.update(headers)
        if cookies:
            merged['Cookie'] = cookies.header()
        return merged

    def get(self, url: str, *, params: Optional[dict] = None,
            headers: Optional[Dict[str, str]] = None,
            cookies: Optional[CookieTrail] = None,
            allow_redirects: bool = True,
            retry: bool = True) -> requests.Response:
        """
        GET a URL, retrying transient failures with exponential backoff.

        Responses with a retryable status are retried; after the last
        attempt the response is returned so the caller can map its status.

        Args:
            url: Absolute URL to fetch
            params: Optional query parameters
            headers: Extra request headers
            cookies: Cookie trail to send
            allow_redirects: Whether to follow redirects
            retry: Set False to make a single attempt

        Returns:
            The final requests.Response

        Raises:
            Unreachable: If every attempt failed at the network level
        """
        attempts = self.MAX_RETRIES if retry else 1
        request_headers = self._headers(headers, cookies)

        for attempt in range(attempts):
            try:
                response = requests.get(
                    url,
                    params=params,
                    headers=request_headers,
                    timeout=self.timeout,
                    allow_redirects=allow_redirects
                )
            except requests.RequestException as e:
                if attempt < attempts - 1:
                    delay = self.BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        f"GET {url} failed (attempt {attempt + 1}/{attempts}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    self._backoff(delay)
                    continue
                logger.error(f"All {attempts} attempts to GET {url} failed. Last error: {e}")
                raise Unreachable(details=str(e)) from e

            if response.status_code in RETRYABLE_STATUSES and attempt < attempts - 1:
                delay = self.BASE_DELAY * (2 ** attempt)
                logger.warning(
                    f"GET {url} returned {response.status_code} "
                    f"(attempt {attempt + 1}/{attempts}). Retrying in {delay} seconds..."
                )
                self._backoff(delay)
                continue
            return response

    def _backoff(self, delay: float) -> None:
        time.sleep(delay)

    def post(self, url: str, *, data: Optional[dict] = None,
             json: Optional[dict] = None,
             headers: Optional[Dict[str, str]] = None,
             cookies: Optional[CookieTrail] = None,
             allow_redirects: bool = True) -> requests.Response:
        """
        POST once. Login submissions are never retried.

        Raises:
            Unreachable: On any network-level failure
        """
        try:
            return requests.post(
                url,
                data=data,
                json=json,
                headers=self._headers(headers, cookies),
                timeout=self.timeout,
                allow_redirects=allow_redirects
            )
        except requests.RequestException as e:
            logger.error(f"POST {url} failed: {e}")
            raise Unreachable(details=str(e)) from e


def is_success(response: requests.Response) -> bool:
    """True for 2xx responses."""
    return 200 <= response.status_code < 300
