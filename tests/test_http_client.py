"""Unit tests for the shared HTTP primitives."""
import pytest
import requests
import responses

from adapters.errors import Unreachable
from adapters.http_client import CookieTrail, VendorHttpClient, is_success

URL = 'https://vendor.example.com/data'


class TestCookieTrail:
    """Test cases for CookieTrail."""

    def test_extend_is_append_only(self):
        """Test that extending never loses or duplicates cookies."""
        trail = CookieTrail().extend(['a=1', 'b=2'])
        extended = trail.extend(['b=2', 'c=3'])

        assert extended.pairs == ('a=1', 'b=2', 'c=3')
        assert trail.pairs == ('a=1', 'b=2')

    def test_from_header_round_trip(self):
        """Test that a stored header rebuilds the same trail."""
        trail = CookieTrail.from_header('sid=abc; csrftoken=xyz')

        assert trail.header() == 'sid=abc; csrftoken=xyz'
        assert len(trail) == 2

    def test_empty_header(self):
        """Test that an empty header gives an empty, falsy trail."""
        assert not CookieTrail.from_header('')
        assert not CookieTrail.from_header(None)

    def test_ignores_fragments_without_value(self):
        """Test that attribute fragments are not mistaken for cookies."""
        trail = CookieTrail().extend(['HttpOnly', '', 'sid=1'])

        assert trail.pairs == ('sid=1',)

    @responses.activate
    def test_absorb_includes_redirect_hops(self):
        """Test that cookies set on a redirect hop are kept."""
        responses.add(
            responses.GET, 'https://vendor.example.com/start',
            status=302,
            headers={'Location': 'https://vendor.example.com/end', 'Set-Cookie': 'hop=1; Path=/'}
        )
        responses.add(
            responses.GET, 'https://vendor.example.com/end',
            status=200,
            headers={'Set-Cookie': 'final=2; Path=/'}
        )

        response = requests.get('https://vendor.example.com/start')
        trail = CookieTrail().absorb(response)

        assert 'hop=1' in trail.pairs
        assert 'final=2' in trail.pairs


class TestVendorHttpClient:
    """Test cases for VendorHttpClient."""

    @responses.activate
    def test_get_sends_cookie_header(self):
        """Test that the cookie trail is sent as a header."""
        responses.add(responses.GET, URL, json={}, status=200)

        VendorHttpClient().get(URL, cookies=CookieTrail(('sid=1', 'x=2')))

        assert responses.calls[0].request.headers['Cookie'] == 'sid=1; x=2'
        assert 'Mozilla' in responses.calls[0].request.headers['User-Agent']

    @responses.activate
    def test_get_retries_server_errors(self, no_backoff_sleep):
        """Test retry logic succeeds after initial failures."""
        responses.add(responses.GET, URL, body='Server Error', status=500)
        responses.add(responses.GET, URL, body='Server Error', status=503)
        responses.add(responses.GET, URL, body='ok', status=200)

        response = VendorHttpClient().get(URL)

        assert response.status_code == 200
        assert len(responses.calls) == 3
        assert [c.args[0] for c in no_backoff_sleep.call_args_list] == [1, 2]

    @responses.activate
    def test_get_returns_last_error_response(self):
        """Test that a persistent server error is returned, not raised."""
        responses.add(responses.GET, URL, body='Server Error', status=502)

        response = VendorHttpClient().get(URL)

        assert response.status_code == 502
        assert len(responses.calls) == VendorHttpClient.MAX_RETRIES

    @responses.activate
    def test_get_does_not_retry_client_errors(self):
        """Test that 4xx responses are returned immediately."""
        responses.add(responses.GET, URL, status=401)

        response = VendorHttpClient().get(URL)

        assert response.status_code == 401
        assert len(responses.calls) == 1

    @responses.activate
    def test_get_network_failure_raises_unreachable(self):
        """Test that repeated connection errors become Unreachable."""
        responses.add(responses.GET, URL, body=requests.exceptions.ConnectionError('refused'))

        with pytest.raises(Unreachable) as exc_info:
            VendorHttpClient().get(URL)

        assert exc_info.value.retryable is True
        assert len(responses.calls) == VendorHttpClient.MAX_RETRIES

    @responses.activate
    def test_get_without_retry(self):
        """Test that retry=False makes exactly one attempt."""
        responses.add(responses.GET, URL, status=503)

        VendorHttpClient().get(URL, retry=False)

        assert len(responses.calls) == 1

    @responses.activate
    def test_post_is_not_retried(self):
        """Test that POST makes a single attempt and maps network errors."""
        responses.add(responses.POST, URL, body=requests.exceptions.Timeout('slow'))

        with pytest.raises(Unreachable):
            VendorHttpClient().post(URL, data={'a': '1'})

        assert len(responses.calls) == 1

    def test_is_success(self):
        """Test the 2xx check."""
        ok = requests.Response()
        ok.status_code = 204
        redirect = requests.Response()
        redirect.status_code = 302

        assert is_success(ok)
        assert not is_success(redirect)
