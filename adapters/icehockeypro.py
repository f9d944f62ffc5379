"""Adapter for IceHockeyPro, a WooCommerce storefront with no API.

Orders and camps are read by scraping server-rendered HTML, so every
selector here is a parse assumption that can break when the theme changes.
"""
import logging
import re
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from adapters.base import AdapterState, FacilityAdapter
from adapters.errors import (
    FacilityError,
    InvalidCredentials,
    NeedsReauth,
    PartialImportError,
    UpstreamError,
    UpstreamSchemaMismatch,
)
from adapters.http_client import CookieTrail, VendorHttpClient, is_success
from processor.activity_processor import ActivityProcessor
from processor.description_parser import (
    looks_like_dates,
    looks_like_location,
    parse_composite_description,
    parse_price_text,
)
from processor.models import (
    AuthResult,
    CatalogSession,
    ChildProfile,
    ImportIssue,
    Order,
    OrderImportResult,
)
from processor.order_matcher import match_orders

logger = logging.getLogger(__name__)

BASE_URL = 'https://icehockeypro.com'
LOGIN_URL = f'{BASE_URL}/my-account/'
ORDERS_URL = f'{BASE_URL}/my-account-2/orders/'
CAMPS_URL = f'{BASE_URL}/product-category/youth-camps/'

FACILITY_ID = 'icehockeypro'
FACILITY_NAME = 'IceHockeyPro'
CAMP = 'camp'

# Fragments only rendered for a logged-in customer
AUTHENTICATED_MARKERS = (
    'woocommerce-orders-table',
    'my_account_orders',
    'order-number',
    'woocommerce-MyAccount-navigation',
)
LOGIN_FORM_MARKERS = ('woocommerce-form-login', 'woocommerce-login-nonce')

ORDER_LINK_SELECTORS = (
    'a.woocommerce-button.view, a.button.view, '
    'td.woocommerce-orders-table__cell--order-actions a'
)
ORDER_NUMBER_SELECTORS = 'td.woocommerce-orders-table__cell--order-number a, td.order-number a'
PRODUCT_NAME_SELECTORS = 'td.product-name, .woocommerce-table--order-details .product-name'
AMOUNT_SELECTORS = (
    '.woocommerce-Price-amount, .order-total .amount, '
    '.woocommerce-table--order-details tfoot tr:last-child .amount'
)
BILLING_SELECTORS = '.woocommerce-column--billing-address address, .woocommerce-customer-details address'
STATUS_SELECTORS = '.woocommerce-order-data mark, .order-status'
DATE_SELECTORS = '.woocommerce-order-data__meta time, .order-date time[datetime], time[datetime]'

ORDER_ID_PATTERN = re.compile(r'(?:view-order|order)/(\d+)')
DIGITS_PATTERN = re.compile(r'\d+')
WRITTEN_DATE_PATTERN = re.compile(r'\b[A-Z][a-z]+ \d{1,2}, \d{4}\b')


def extract_login_nonce(html: str) -> Optional[str]:
    """Return the value of the login form's anti-forgery token, if present."""
    soup = BeautifulSoup(html, 'html.parser')
    field = soup.select_one('input[name="woocommerce-login-nonce"]')
    if field is None:
        return None
    return field.get('value') or None


def is_authenticated_page(html: str) -> bool:
    return any(marker in html for marker in AUTHENTICATED_MARKERS)


def is_login_page(html: str) -> bool:
    return any(marker in html for marker in LOGIN_FORM_MARKERS)


def collect_order_links(html: str) -> List[str]:
    """
    Collect order detail links from the orders table.

    Links come from the action buttons and from the order-number cells;
    duplicates are removed keeping first-seen order.
    """
    soup = BeautifulSoup(html, 'html.parser')
    links = []
    for selector in (ORDER_LINK_SELECTORS, ORDER_NUMBER_SELECTORS):
        for anchor in soup.select(selector):
            href = (anchor.get('href') or '').strip()
            if href:
                links.append(href if href.startswith('http') else f'{BASE_URL}{href}')
    return list(dict.fromkeys(links))


class IceHockeyProAdapter(FacilityAdapter):
    """Scraper for IceHockeyPro order history and youth camp listings."""

    vendor = 'icehockeypro'

    MAX_ORDER_DETAILS = 50
    CATALOG_DETAIL_LIMIT = 10

    def __init__(self, timeout: int = 30, http: Optional[VendorHttpClient] = None,
                 processor: Optional[ActivityProcessor] = None):
        """
        Initialize the adapter.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            http: Optional preconfigured HTTP client
            processor: Optional activity processor
        """
        super().__init__()
        self.http = http or VendorHttpClient(timeout=timeout)
        self.processor = processor or ActivityProcessor()

    def authenticate(self, email: str, secret: str,
                     facility_id: Optional[str] = None) -> AuthResult:
        """
        Log in through the storefront's account form.

        Three hops: read the login page for its nonce, submit the form
        without following the redirect, then load the orders page. Cookies
        from every hop are accumulated and sent on the next one.

        Args:
            email: Account username or email
            secret: Account password
            facility_id: Ignored; the storefront is a single facility

        Returns:
            AuthResult whose session token is the accumulated cookie header

        Raises:
            InvalidCredentials: If the orders page still shows the login form
            UpstreamSchemaMismatch: If the login form or account page changed
            Unreachable: If the storefront cannot be reached
        """
        if not email or not secret:
            raise InvalidCredentials('Email and password required')

        self.state = AdapterState.AUTHENTICATING
        try:
            result = self._login(email, secret)
        except FacilityError:
            self.state = AdapterState.UNAUTHENTICATED
            raise

        self.state = AdapterState.AUTHENTICATED
        return result

    def _login(self, email: str, secret: str) -> AuthResult:
        login_page = self.http.get(LOGIN_URL)
        if not is_success(login_page):
            raise UpstreamError(login_page.status_code)

        cookies = CookieTrail().absorb(login_page)
        nonce = extract_login_nonce(login_page.text)
        if not nonce:
            raise UpstreamSchemaMismatch('Login form nonce not found')

        logger.info(f"Submitting IceHockeyPro login form ({len(cookies)} cookies)")
        submitted = self.http.post(
            LOGIN_URL,
            data={
                'username': email,
                'password': secret,
                'woocommerce-login-nonce': nonce,
                '_wp_http_referer': '/my-account/',
                'login': 'Log in',
                'redirect': ORDERS_URL,
            },
            headers={
                'Content-Type': 'application/x-www-form-urlencoded',
                'Origin': BASE_URL,
                'Referer': LOGIN_URL,
            },
            cookies=cookies,
            allow_redirects=False
        )
        if not 200 <= submitted.status_code < 400:
            logger.warning(f"IceHockeyPro login POST returned {submitted.status_code}")
            raise InvalidCredentials(details=f'HTTP {submitted.status_code}')
        cookies = cookies.absorb(submitted)

        orders_page = self.http.get(ORDERS_URL, cookies=cookies)
        cookies = cookies.absorb(orders_page)
        html = orders_page.text

        if not is_authenticated_page(html):
            if is_login_page(html):
                logger.warning("IceHockeyPro login rejected: orders page shows the login form")
                raise InvalidCredentials()
            raise UpstreamSchemaMismatch('Orders page has neither account nor login markup')

        has_orders = 'order-number' in html
        logger.info(f"IceHockeyPro login succeeded (has_orders={has_orders})")
        return AuthResult(
            session_token=cookies.header(),
            roster_members=[],
            facility_id=FACILITY_ID,
            facility_name=FACILITY_NAME,
            has_orders=has_orders
        )

    def import_orders(self, session_token: str,
                      profiles: Sequence[ChildProfile] = ()) -> OrderImportResult:
        """
        Scrape order history and attribute orders to profiles.

        Detail pages are fetched one at a time. A failing order is recorded
        in ``errors`` and the batch continues.

        Args:
            session_token: Cookie header returned by authenticate()
            profiles: Player profiles used for billing-name matching

        Returns:
            OrderImportResult with matched and unmatched orders

        Raises:
            NeedsReauth: If the session is no longer valid
            UpstreamError: On other non-2xx responses for the orders page
            Unreachable: If the storefront cannot be reached
        """
        self.state = AdapterState.SYNCING_ACTIVITIES
        try:
            result = self._import_orders(CookieTrail.from_header(session_token), profiles)
        except NeedsReauth:
            self.state = AdapterState.UNAUTHENTICATED
            raise
        except FacilityError:
            self.state = AdapterState.AUTHENTICATED
            raise

        self.state = AdapterState.AUTHENTICATED
        return result

    def _import_orders(self, cookies: CookieTrail,
                       profiles: Sequence[ChildProfile]) -> OrderImportResult:
        response = self.http.get(ORDERS_URL, cookies=cookies)
        if response.status_code in (401, 403):
            raise NeedsReauth()
        if not is_success(response):
            raise UpstreamError(response.status_code)

        html = response.text
        if is_login_page(html) and 'order-number' not in html:
            raise NeedsReauth()

        links = collect_order_links(html)
        skipped = max(0, len(links) - self.MAX_ORDER_DETAILS)
        if skipped:
            logger.warning(f"Only the first {self.MAX_ORDER_DETAILS} of {len(links)} orders will be read")
        links = links[:self.MAX_ORDER_DETAILS]

        orders = []
        errors = []
        for index, link in enumerate(links):
            try:
                orders.append(self._fetch_order(link, index, cookies))
            except PartialImportError as e:
                logger.warning(f"Skipping order {e.reference}: {e.message}")
                errors.append(ImportIssue(reference=e.reference, message=e.message))

        matched, unmatched = match_orders(orders, profiles)
        logger.info(
            f"Imported {len(orders)} IceHockeyPro orders "
            f"({len(matched)} matched, {len(unmatched)} unmatched, {len(errors)} failed)"
        )
        return OrderImportResult(
            matched=matched,
            unmatched=unmatched,
            errors=errors,
            scraped_links=len(links),
            skipped_links=skipped
        )

    def _fetch_order(self, link: str, index: int, cookies: CookieTrail) -> Order:
        try:
            response = self.http.get(link, cookies=cookies)
        except FacilityError as e:
            raise PartialImportError(link, e.message) from e

        if not is_success(response):
            raise PartialImportError(link, f'HTTP {response.status_code}')

        try:
            return self.parse_order_detail(response.text, link, index)
        except (AttributeError, IndexError, TypeError, ValueError) as e:
            raise PartialImportError(link, f'Unparseable order page: {e}') from e

    def parse_order_detail(self, html: str, link: str, index: int = 0) -> Order:
        """
        Extract an Order from a WooCommerce order detail page.

        Args:
            html: Detail page markup
            link: URL the page was read from (carries the order number)
            index: Position in the orders list, used for an id of last resort

        Returns:
            Order with matched_profile_id unset
        """
        soup = BeautifulSoup(html, 'html.parser')

        order_id = self._order_id(soup, link, index)

        product = soup.select_one(PRODUCT_NAME_SELECTORS)
        description = parse_composite_description(product.get_text(' ', strip=True) if product else '')

        amounts = soup.select(AMOUNT_SELECTORS)
        price_text = amounts[-1].get_text('', strip=True) if amounts else ''
        price, currency = parse_price_text(price_text)

        billing_lines = []
        address = soup.select_one(BILLING_SELECTORS)
        if address is not None:
            billing_lines = [line for line in address.get_text('\n', strip=True).split('\n') if line]

        status_node = soup.select_one(STATUS_SELECTORS)
        status = status_node.get_text(strip=True).lower() if status_node else ''

        return Order(
            order_id=order_id,
            item_name=description.name or f'Order #{order_id}',
            location=description.location,
            date_range_text=description.dates,
            price=self.processor.normalize_price(price),
            currency=currency,
            billing_name=billing_lines[0] if billing_lines else '',
            billing_address='\n'.join(billing_lines),
            status=status or 'completed',
            order_date=self._order_date(soup)
        )

    def _order_id(self, soup: BeautifulSoup, link: str, index: int) -> str:
        match = ORDER_ID_PATTERN.search(link)
        if match:
            return match.group(1)

        heading = soup.select_one('mark.order-number, h1, h2')
        if heading is not None:
            digits = DIGITS_PATTERN.search(heading.get_text(' ', strip=True))
            if digits:
                return digits.group(0)
        return f'unknown-{index + 1}'

    def _order_date(self, soup: BeautifulSoup) -> str:
        node = soup.select_one(DATE_SELECTORS)
        raw = ''
        if node is not None:
            raw = node.get('datetime') or node.get_text(strip=True)
        if not raw:
            marked = soup.select_one('mark.order-date')
            if marked is not None:
                raw = marked.get_text(strip=True)
        if not raw:
            found = WRITTEN_DATE_PATTERN.search(soup.get_text(' ', strip=True))
            raw = found.group(0) if found else ''
        return self.processor.normalize_date(raw) or raw

    def list_public_catalog(self, facility_id: Optional[str] = None) -> List[CatalogSession]:
        """
        Read the public youth camp listing.

        Items missing a location or dates are expanded from their product
        page, for the first CATALOG_DETAIL_LIMIT such items only.

        Returns:
            List of camps as CatalogSession records

        Raises:
            UpstreamError: If the listing page returns a non-2xx status
            Unreachable: If the storefront cannot be reached
        """
        previous_state = self.state
        self.state = AdapterState.SYNCING_CATALOG
        try:
            response = self.http.get(CAMPS_URL)
            if not is_success(response):
                raise UpstreamError(response.status_code)
            sessions = self.parse_camp_listing(response.text)
            sessions = self._expand_camps(sessions)
        finally:
            self.state = previous_state

        logger.info(f"Fetched {len(sessions)} IceHockeyPro camps")
        return sessions

    def parse_camp_listing(self, html: str) -> List[CatalogSession]:
        """Parse product cards from a WooCommerce category page."""
        soup = BeautifulSoup(html, 'html.parser')
        sessions = []

        for item in soup.select('li.product, .product-item, .woocommerce ul.products li'):
            title_node = item.select_one('.woocommerce-loop-product__title, h2, .product-title')
            title = title_node.get_text(' ', strip=True) if title_node else ''
            if not title:
                continue

            link_node = item.select_one('a.woocommerce-LoopProduct-link, a')
            url = (link_node.get('href') or '').strip() if link_node else ''
            if url and not url.startswith('http'):
                url = f'{BASE_URL}{url}'

            price_node = item.select_one('.woocommerce-Price-amount, .price .amount')
            price, currency = parse_price_text(price_node.get_text('', strip=True) if price_node else '')

            image_node = item.select_one('img')
            image_url = (image_node.get('src') or image_node.get('data-src')) if image_node else None

            desc_node = item.select_one('.short-description, .product-excerpt, p')
            summary = desc_node.get_text(' ', strip=True) if desc_node else ''

            parsed = parse_composite_description(f'{title} | {summary}' if summary else title)
            sessions.append(CatalogSession(
                session_id=f"ihp-{self.processor.generate_record_id(url or title)[:16]}",
                name=parsed.name or title,
                source=self.vendor,
                location=parsed.location,
                dates=parsed.dates,
                price=self.processor.normalize_price(price),
                currency=currency,
                description=summary,
                url=url or None,
                image_url=image_url or None,
                session_type=CAMP
            ))
        return sessions

    def _expand_camps(self, sessions: List[CatalogSession]) -> List[CatalogSession]:
        expanded = []
        remaining = self.CATALOG_DETAIL_LIMIT
        for session in sessions:
            if remaining > 0 and session.url and (not session.location or not session.dates):
                remaining -= 1
                session = self._expand_camp(session)
            expanded.append(session)
        return expanded

    def _expand_camp(self, session: CatalogSession) -> CatalogSession:
        try:
            response = self.http.get(session.url)
        except FacilityError as e:
            logger.warning(f"Camp detail fetch failed for {session.url}: {e.message}")
            return session
        if not is_success(response):
            logger.warning(f"Camp detail page {session.url} returned {response.status_code}")
            return session

        location, dates = self.parse_camp_detail(response.text)
        return replace(
            session,
            location=session.location or location,
            dates=session.dates or dates
        )

    def parse_camp_detail(self, html: str) -> Tuple[str, str]:
        """
        Find a location line and a dates line on a product page.

        Returns:
            Tuple of (location, dates); either may be empty
        """
        soup = BeautifulSoup(html, 'html.parser')
        location = ''
        dates = ''
        for selector in (
            '.woocommerce-product-details__short-description, .product-short-description, '
            '.entry-summary .description',
            '.woocommerce-Tabs-panel--description, .product-description',
        ):
            node = soup.select_one(selector)
            if node is None:
                continue
            for line in node.get_text('\n', strip=True).split('\n'):
                if not location and looks_like_location(line):
                    location = line
                elif not dates and looks_like_dates(line):
                    dates = line
            if location and dates:
                break
        return location, dates
