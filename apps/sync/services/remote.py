"""
HTTP client for the remote store.

The remote store speaks the PostgREST dialect (as exposed by Supabase):
``GET/POST/PATCH/DELETE /rest/v1/<table>`` with ``column=op.value`` filters.
Transport failures become ConnectivityUnavailableError, HTTP errors become
RemoteRejectedError.
"""

from collections import defaultdict
from datetime import date, datetime
import logging

from django.conf import settings
import httpx

from ..exceptions import ConnectivityUnavailableError, RemoteRejectedError


logger = logging.getLogger(__name__)

FILTER_OPERATORS = ('eq', 'neq', 'gt', 'gte', 'lt', 'lte', 'in', 'is')


def _format_value(value):
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _filter_params(filters):
    """Turn ``[(column, op, value), ...]`` into PostgREST query parameters."""
    params = []
    for column, op, value in filters:
        if op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator '{op}'")
        if op == 'in':
            value = '(' + ','.join(_format_value(item) for item in value) + ')'
        else:
            value = _format_value(value)
        params.append((column, f"{op}.{value}"))
    return params


class RemoteStore:
    """
    Thin synchronous client over the remote store's REST interface.

    Args:
        base_url: Project URL, e.g. ``https://xyz.supabase.co``.
        api_key: Key sent in the ``apikey`` header.
        token: Bearer token; defaults to ``api_key``.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(self, base_url, api_key, *, token=None, timeout=10.0, transport=None):
        self.base_url = base_url.rstrip('/')
        self._client = httpx.Client(
            base_url=f"{self.base_url}/rest/v1/",
            headers={
                'apikey': api_key,
                'Authorization': f"Bearer {token or api_key}",
                'Content-Type': 'application/json',
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method, table, *, params=None, json=None, headers=None):
        try:
            response = self._client.request(method, table, params=params, json=json, headers=headers)
        except httpx.TransportError as e:
            raise ConnectivityUnavailableError(f"{method} {table}: {e}") from e

        if response.status_code >= 400:
            try:
                details = response.json()
            except ValueError:
                details = response.text
            raise RemoteRejectedError(
                f"{method} {table} rejected with HTTP {response.status_code}: {details}",
                status_code=response.status_code,
                details=details,
            )
        return response

    # -------------------------------------------------------------------------
    # Generic table operations
    # -------------------------------------------------------------------------

    def select(self, table, filters=(), order=None, columns='*') -> list:
        """
        Query rows.

        Args:
            table: Collection name.
            filters: ``(column, op, value)`` triples; ``op`` is one of
                eq, neq, gt, gte, lt, lte, in, is.
            order: PostgREST order clause, e.g. ``'due_date.asc'``.
            columns: Column list for ``select``.
        """
        params = [('select', columns)] + _filter_params(filters)
        if order:
            params.append(('order', order))
        return self._request('GET', table, params=params).json()

    def upsert(self, table, rows, on_conflict='id') -> None:
        """Insert rows, merging into existing ones that collide on ``on_conflict``."""
        if not rows:
            return
        self._request(
            'POST',
            table,
            params={'on_conflict': on_conflict},
            json=rows,
            headers={'Prefer': 'resolution=merge-duplicates,return=minimal'},
        )

    def update(self, table, values, filters) -> None:
        if not filters:
            raise ValueError('Refusing to update a whole table')
        self._request(
            'PATCH',
            table,
            params=_filter_params(filters),
            json=values,
            headers={'Prefer': 'return=minimal'},
        )

    def delete(self, table, filters) -> None:
        """Delete matching rows. Matching nothing is not an error."""
        if not filters:
            raise ValueError('Refusing to delete a whole table')
        self._request('DELETE', table, params=_filter_params(filters))

    def probe(self, timeout=None) -> bool:
        """HEAD the REST root; any answer below 500 means the store is reachable."""
        if timeout is None:
            timeout = getattr(settings, 'CONNECTIVITY_PROBE_TIMEOUT', 3.0)
        try:
            response = self._client.head(f"{self.base_url}/rest/v1/", timeout=timeout)
        except httpx.HTTPError as e:
            logger.debug("Reachability probe failed: %s", e)
            return False
        return 200 <= response.status_code < 500

    # -------------------------------------------------------------------------
    # Installments
    # -------------------------------------------------------------------------

    def fetch_installments(self, user_id) -> list:
        """All of a user's installments with their payments nested, newest first."""
        installments = self.select(
            'installments',
            [('user_id', 'eq', user_id)],
            order='created_at.desc',
        )
        if not installments:
            return []

        payments = self.select(
            'installment_payments',
            [('installment_id', 'in', [row['id'] for row in installments])],
            order='due_date.asc',
        )
        by_installment = defaultdict(list)
        for payment in payments:
            by_installment[str(payment['installment_id'])].append(payment)

        for row in installments:
            row['payments'] = by_installment.get(str(row['id']), [])
        return installments


def get_remote_store():
    """
    Build the configured remote store client.

    Returns None when ``REMOTE_STORE_URL`` is empty (offline-only mode).
    """
    url = getattr(settings, 'REMOTE_STORE_URL', '')
    if not url:
        return None
    api_key = settings.REMOTE_STORE_KEY
    return RemoteStore(
        url,
        api_key,
        token=getattr(settings, 'REMOTE_STORE_SERVICE_KEY', '') or api_key,
        timeout=getattr(settings, 'REMOTE_STORE_TIMEOUT', 10.0),
    )