"""Unit tests for IceHockeyProAdapter."""
from decimal import Decimal
from urllib.parse import parse_qs

import pytest
import responses

from adapters.base import AdapterState
from adapters.errors import InvalidCredentials, NeedsReauth, UpstreamError, UpstreamSchemaMismatch
from adapters.icehockeypro import (
    BASE_URL,
    CAMPS_URL,
    LOGIN_URL,
    ORDERS_URL,
    IceHockeyProAdapter,
    collect_order_links,
    extract_login_nonce,
)
from processor.models import ChildProfile

SESSION = 'wp_test=1; wordpress_logged_in_abc=token'

LOGIN_HTML = """
<html><body>
<form class="woocommerce-form woocommerce-form-login login" method="post">
    <input type="text" name="username" id="username" />
    <input type="password" name="password" id="password" />
    <input type="hidden" id="woocommerce-login-nonce" name="woocommerce-login-nonce" value="n0nce42" />
    <button type="submit" name="login" value="Log in">Log in</button>
</form>
</body></html>
"""

ORDERS_HTML = """
<html><body>
<nav class="woocommerce-MyAccount-navigation"><ul><li><a href="/my-account-2/orders/">Orders</a></li></ul></nav>
<table class="woocommerce-orders-table woocommerce-MyAccount-orders shop_table">
<tbody>
<tr class="woocommerce-orders-table__row">
    <td class="woocommerce-orders-table__cell woocommerce-orders-table__cell--order-number">
        <a href="https://icehockeypro.com/my-account-2/view-order/1001/">#1001</a>
    </td>
    <td class="woocommerce-orders-table__cell woocommerce-orders-table__cell--order-actions">
        <a href="https://icehockeypro.com/my-account-2/view-order/1001/" class="woocommerce-button button view">View</a>
    </td>
</tr>
<tr class="woocommerce-orders-table__row">
    <td class="woocommerce-orders-table__cell woocommerce-orders-table__cell--order-number">
        <a href="/my-account-2/view-order/1002/">#1002</a>
    </td>
    <td class="woocommerce-orders-table__cell woocommerce-orders-table__cell--order-actions">
        <a href="/my-account-2/view-order/1002/" class="woocommerce-button button view">View</a>
    </td>
</tr>
<tr class="woocommerce-orders-table__row">
    <td class="woocommerce-orders-table__cell woocommerce-orders-table__cell--order-number">
        <a href="/my-account-2/view-order/1003/">#1003</a>
    </td>
</tr>
</tbody>
</table>
</body></html>
"""


def order_detail_html(order_number, product, billing_lines, total, status='Completed',
                      placed='January 5, 2026'):
    address = '<br/>'.join(billing_lines)
    return f"""
    <html><body>
    <p>Order #<mark class="order-number">{order_number}</mark> was placed on
    <mark class="order-date">{placed}</mark> and is currently
    <mark class="order-status">{status}</mark>.</p>
    <table class="woocommerce-table woocommerce-table--order-details shop_table order_details">
    <tbody>
    <tr class="order_item">
        <td class="woocommerce-table__product-name product-name">
            <a href="https://icehockeypro.com/product/camp/">{product}</a>
            <strong class="product-quantity">&times;&nbsp;1</strong>
        </td>
        <td class="product-total"><span class="woocommerce-Price-amount amount"><bdi><span class="woocommerce-Price-currencySymbol">&#36;</span>999.00</bdi></span></td>
    </tr>
    </tbody>
    <tfoot>
    <tr><th>Subtotal:</th><td><span class="woocommerce-Price-amount amount"><span class="woocommerce-Price-currencySymbol">&#36;</span>999.00</span></td></tr>
    <tr><th>Total:</th><td><span class="woocommerce-Price-amount amount"><span class="woocommerce-Price-currencySymbol">&#36;</span>{total}</span></td></tr>
    </tfoot>
    </table>
    <section class="woocommerce-customer-details">
        <div class="woocommerce-column woocommerce-column--1 woocommerce-column--billing-address col-1">
            <h2>Billing address</h2>
            <address>{address}<p class="woocommerce-customer-details--email">parent@example.com</p></address>
        </div>
    </section>
    </body></html>
    """


def order_url(number):
    return f'{BASE_URL}/my-account-2/view-order/{number}/'


class TestPageHelpers:
    """Test cases for the markup helpers."""

    def test_extract_login_nonce(self):
        assert extract_login_nonce(LOGIN_HTML) == 'n0nce42'

    def test_extract_login_nonce_missing(self):
        assert extract_login_nonce('<html><form></form></html>') is None

    def test_collect_order_links_deduplicates(self):
        """Test links from both table locations are merged in order."""
        assert collect_order_links(ORDERS_HTML) == [order_url(1001), order_url(1002), order_url(1003)]


class TestAuthenticate:
    """Test cases for IceHockeyProAdapter.authenticate."""

    @responses.activate
    def test_login_accumulates_cookies_across_hops(self):
        """Test cookies from the login page and the POST are both sent on."""
        responses.add(responses.GET, LOGIN_URL, body=LOGIN_HTML,
                      headers={'Set-Cookie': 'wp_test=1; Path=/'})
        responses.add(responses.POST, LOGIN_URL, status=302,
                      headers={'Location': ORDERS_URL, 'Set-Cookie': 'wordpress_logged_in_abc=token; Path=/'})
        responses.add(responses.GET, ORDERS_URL, body=ORDERS_HTML)

        adapter = IceHockeyProAdapter()
        result = adapter.authenticate('parent@example.com', 'secret')

        assert result.session_token == SESSION
        assert result.has_orders is True
        assert result.roster_members == []
        assert adapter.state == AdapterState.AUTHENTICATED

        post_request = responses.calls[1].request
        form = {k: v[0] for k, v in parse_qs(post_request.body).items()}
        assert form['username'] == 'parent@example.com'
        assert form['password'] == 'secret'
        assert form['woocommerce-login-nonce'] == 'n0nce42'
        assert form['redirect'] == ORDERS_URL
        assert post_request.headers['Cookie'] == 'wp_test=1'

        assert responses.calls[2].request.headers['Cookie'] == SESSION

    @responses.activate
    def test_login_form_shown_again(self):
        """Test a login form without account markup means bad credentials."""
        responses.add(responses.GET, LOGIN_URL, body=LOGIN_HTML)
        responses.add(responses.POST, LOGIN_URL, body=LOGIN_HTML, status=200)
        responses.add(responses.GET, ORDERS_URL, body=LOGIN_HTML)

        adapter = IceHockeyProAdapter()
        with pytest.raises(InvalidCredentials):
            adapter.authenticate('parent@example.com', 'wrong')

        assert adapter.state == AdapterState.UNAUTHENTICATED

    @responses.activate
    def test_login_post_server_error(self):
        """Test a failing form submission means bad credentials."""
        responses.add(responses.GET, LOGIN_URL, body=LOGIN_HTML)
        responses.add(responses.POST, LOGIN_URL, status=500)

        with pytest.raises(InvalidCredentials):
            IceHockeyProAdapter().authenticate('parent@example.com', 'secret')

    @responses.activate
    def test_login_page_without_nonce(self):
        """Test a changed login form is reported as schema drift."""
        responses.add(responses.GET, LOGIN_URL, body='<html><body>Maintenance</body></html>')

        with pytest.raises(UpstreamSchemaMismatch):
            IceHockeyProAdapter().authenticate('parent@example.com', 'secret')

    @responses.activate
    def test_unrecognised_account_page(self):
        """Test an orders page with neither marker is schema drift."""
        responses.add(responses.GET, LOGIN_URL, body=LOGIN_HTML)
        responses.add(responses.POST, LOGIN_URL, status=302, headers={'Location': ORDERS_URL})
        responses.add(responses.GET, ORDERS_URL, body='<html><body>Welcome</body></html>')

        with pytest.raises(UpstreamSchemaMismatch):
            IceHockeyProAdapter().authenticate('parent@example.com', 'secret')

    def test_missing_credentials(self):
        """Test empty credentials fail before any request."""
        with pytest.raises(InvalidCredentials):
            IceHockeyProAdapter().authenticate('', '')


class TestImportOrders:
    """Test cases for IceHockeyProAdapter.import_orders."""

    def register_orders(self):
        responses.add(responses.GET, ORDERS_URL, body=ORDERS_HTML)
        responses.add(responses.GET, order_url(1001), body=order_detail_html(
            1001,
            'SUPER SKILLS WEEKEND with MAX IVANOV | MIAMI, Florida - USA | February 28 - March 1, 2026',
            ['Jane A Smith', '12 Main St', 'Miami, FL 33101'],
            '425.00',
            status='Processing'
        ))
        responses.add(responses.GET, order_url(1002), status=500)
        responses.add(responses.GET, order_url(1003), body=order_detail_html(
            1003,
            'Goalie Camp | Toronto, Ontario | July 7-11, 2026',
            ['Robert Brown', '1 King St'],
            '300.00',
            placed='February 10, 2026'
        ))

    @responses.activate
    def test_import_parses_and_matches(self):
        """Test orders are parsed, matched and a failing order is skipped."""
        self.register_orders()
        profiles = [ChildProfile(id='p1', display_name='Jane Smith')]

        adapter = IceHockeyProAdapter()
        result = adapter.import_orders(SESSION, profiles)

        assert [o.order_id for o in result.matched] == ['1001']
        assert [o.order_id for o in result.unmatched] == ['1003']
        assert [e.reference for e in result.errors] == [order_url(1002)]
        assert result.scraped_links == 3
        assert result.skipped_links == 0
        assert adapter.state == AdapterState.AUTHENTICATED

        order = result.matched[0]
        assert order.item_name == 'SUPER SKILLS WEEKEND with MAX IVANOV'
        assert order.location == 'MIAMI, Florida - USA'
        assert order.date_range_text == 'February 28 - March 1, 2026'
        assert order.price == Decimal('425.00')
        assert order.currency == 'USD'
        assert order.billing_name == 'Jane A Smith'
        assert order.billing_address.startswith('Jane A Smith\n12 Main St')
        assert order.status == 'processing'
        assert order.order_date == '2026-01-05'
        assert order.matched_profile_id == 'p1'

        other = result.unmatched[0]
        assert other.item_name == 'Goalie Camp'
        assert other.location == 'Toronto, Ontario'
        assert other.status == 'completed'
        assert other.order_date == '2026-02-10'

    @responses.activate
    def test_detail_pages_fetched_sequentially_with_session(self):
        """Test every detail request carries the session cookies, in list order."""
        self.register_orders()

        IceHockeyProAdapter().import_orders(SESSION)

        detail_calls = [c for c in responses.calls if '/view-order/' in c.request.url]
        assert detail_calls[0].request.url == order_url(1001)
        assert detail_calls[-1].request.url == order_url(1003)
        assert all(c.request.headers['Cookie'] == SESSION for c in detail_calls)

    @responses.activate
    def test_detail_limit(self):
        """Test that only MAX_ORDER_DETAILS detail pages are read."""
        self.register_orders()

        adapter = IceHockeyProAdapter()
        adapter.MAX_ORDER_DETAILS = 1
        result = adapter.import_orders(SESSION)

        assert result.scraped_links == 1
        assert result.skipped_links == 2
        assert len(result.matched) + len(result.unmatched) == 1

    @responses.activate
    def test_login_form_means_reauth(self):
        """Test an expired session showing the login form."""
        responses.add(responses.GET, ORDERS_URL, body=LOGIN_HTML)

        adapter = IceHockeyProAdapter()
        with pytest.raises(NeedsReauth):
            adapter.import_orders(SESSION)

        assert adapter.state == AdapterState.UNAUTHENTICATED

    @responses.activate
    def test_forbidden_means_reauth(self):
        """Test that 403 maps to NeedsReauth."""
        responses.add(responses.GET, ORDERS_URL, status=403)

        with pytest.raises(NeedsReauth):
            IceHockeyProAdapter().import_orders(SESSION)

    @responses.activate
    def test_server_error(self):
        """Test other failures carry the status."""
        responses.add(responses.GET, ORDERS_URL, status=502)

        with pytest.raises(UpstreamError) as exc_info:
            IceHockeyProAdapter().import_orders(SESSION)

        assert exc_info.value.status == 502

    def test_order_id_falls_back_to_heading(self):
        """Test the order number mark is used when the link has none."""
        html = order_detail_html(2002, 'Camp', ['Jane Smith'], '10.00')

        order = IceHockeyProAdapter().parse_order_detail(html, 'https://icehockeypro.com/odd-link/')

        assert order.order_id == '2002'

    def test_order_without_anything(self):
        """Test defaults for an empty page."""
        order = IceHockeyProAdapter().parse_order_detail('<html></html>', 'https://x/', index=4)

        assert order.order_id == 'unknown-5'
        assert order.item_name == 'Order #unknown-5'
        assert order.price == Decimal('0')
        assert order.status == 'completed'
        assert order.billing_name == ''


CAMPS_HTML = """
<html><body><div class="woocommerce"><ul class="products">
<li class="product">
    <a href="https://icehockeypro.com/product/super-skills-miami/" class="woocommerce-LoopProduct-link">
        <img src="https://cdn.example.com/miami.jpg" />
        <h2 class="woocommerce-loop-product__title">SUPER SKILLS WEEKEND | MIAMI, Florida - USA | February 28 - March 1, 2026</h2>
        <span class="price"><span class="woocommerce-Price-amount amount"><span class="woocommerce-Price-currencySymbol">&#36;</span>450.00</span></span>
    </a>
</li>
<li class="product">
    <a href="/product/goalie-camp/" class="woocommerce-LoopProduct-link">
        <h2 class="woocommerce-loop-product__title">Goalie Camp</h2>
        <span class="price"><span class="woocommerce-Price-amount amount"><span class="woocommerce-Price-currencySymbol">C&#36;</span>300.00</span></span>
    </a>
</li>
<li class="product">
    <a href="/product/power-skating/" class="woocommerce-LoopProduct-link">
        <h2 class="woocommerce-loop-product__title">Power Skating</h2>
    </a>
</li>
</ul></div></body></html>
"""

GOALIE_DETAIL_HTML = """
<html><body>
<div class="woocommerce-product-details__short-description">
    <p>Toronto, Ontario</p>
    <p>July 7-11, 2026</p>
</div>
</body></html>
"""


class TestCamps:
    """Test cases for IceHockeyProAdapter.list_public_catalog."""

    @responses.activate
    def test_camps_listing_with_detail_expansion(self):
        """Test listing parse and expansion of incomplete items."""
        responses.add(responses.GET, CAMPS_URL, body=CAMPS_HTML)
        responses.add(responses.GET, f'{BASE_URL}/product/goalie-camp/', body=GOALIE_DETAIL_HTML)
        responses.add(responses.GET, f'{BASE_URL}/product/power-skating/', status=404)

        camps = IceHockeyProAdapter().list_public_catalog()

        assert [c.name for c in camps] == ['SUPER SKILLS WEEKEND', 'Goalie Camp', 'Power Skating']

        miami, goalie, skating = camps
        assert miami.location == 'MIAMI, Florida - USA'
        assert miami.dates == 'February 28 - March 1, 2026'
        assert miami.price == Decimal('450.00')
        assert miami.image_url == 'https://cdn.example.com/miami.jpg'
        assert miami.source == 'icehockeypro'

        assert goalie.url == f'{BASE_URL}/product/goalie-camp/'
        assert goalie.location == 'Toronto, Ontario'
        assert goalie.dates == 'July 7-11, 2026'
        assert goalie.currency == 'CAD'

        assert skating.location == ''
        assert skating.dates == ''

        detail_calls = [c for c in responses.calls if '/product/' in c.request.url]
        assert all('super-skills' not in c.request.url for c in detail_calls)

    @responses.activate
    def test_detail_expansion_limit(self):
        """Test items beyond the limit pass through unexpanded."""
        responses.add(responses.GET, CAMPS_URL, body=CAMPS_HTML)
        responses.add(responses.GET, f'{BASE_URL}/product/goalie-camp/', body=GOALIE_DETAIL_HTML)

        adapter = IceHockeyProAdapter()
        adapter.CATALOG_DETAIL_LIMIT = 1
        camps = adapter.list_public_catalog()

        assert camps[1].location == 'Toronto, Ontario'
        assert camps[2].location == ''
        assert not any('power-skating' in c.request.url for c in responses.calls)

    @responses.activate
    def test_session_ids_are_stable(self):
        """Test that the same listing yields the same ids."""
        responses.add(responses.GET, CAMPS_URL, body=CAMPS_HTML)
        responses.add(responses.GET, f'{BASE_URL}/product/goalie-camp/', body=GOALIE_DETAIL_HTML)
        responses.add(responses.GET, f'{BASE_URL}/product/power-skating/', status=404)

        first = IceHockeyProAdapter().list_public_catalog()
        second = IceHockeyProAdapter().list_public_catalog()

        assert [c.session_id for c in first] == [c.session_id for c in second]
        assert len({c.session_id for c in first}) == 3

    @responses.activate
    def test_listing_failure(self):
        """Test that an unavailable listing raises."""
        responses.add(responses.GET, CAMPS_URL, status=503)

        with pytest.raises(UpstreamError):
            IceHockeyProAdapter().list_public_catalog()
