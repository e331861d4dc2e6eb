"""In-memory stand-in for the remote store used across app tests."""

from collections import defaultdict
from datetime import date, datetime
import copy
import uuid

from django.utils.dateparse import parse_date, parse_datetime


def _comparable(row_value, filter_value):
    """Bring a stored value and a filter value to the same type."""
    if isinstance(filter_value, uuid.UUID):
        return (str(row_value) if row_value is not None else None), str(filter_value)
    if isinstance(filter_value, datetime) and isinstance(row_value, str):
        return parse_datetime(row_value), filter_value
    if isinstance(filter_value, date) and not isinstance(filter_value, datetime) and isinstance(row_value, str):
        return parse_date(row_value[:10]), filter_value
    return row_value, filter_value


def _matches(row, column, op, value):
    current = row.get(column)
    if op == 'in':
        return str(current) in {str(item) for item in value}
    if op == 'is':
        return current is value
    current, value = _comparable(current, value)
    if op == 'eq':
        return current == value
    if op == 'neq':
        return current != value
    if current is None:
        return False
    if op == 'lt':
        return current < value
    if op == 'lte':
        return current <= value
    if op == 'gt':
        return current > value
    if op == 'gte':
        return current >= value
    raise ValueError(op)


class FakeRemoteStore:
    """
    Same surface as RemoteStore, backed by dicts.

    ``fail_next(exc)`` makes the next call raise ``exc``; ``reachable`` drives
    ``probe()``. Every call is recorded in ``calls`` as ``(method, table)``.
    """

    base_url = 'http://localhost'

    def __init__(self):
        self.tables = defaultdict(dict)
        self.calls = []
        self.reachable = True
        self.closed = False
        self._errors = []

    def fail_next(self, *errors):
        self._errors.extend(errors)

    def _call(self, method, table):
        self.calls.append((method, table))
        if self._errors:
            raise self._errors.pop(0)

    def rows(self, table):
        return list(self.tables[table].values())

    def select(self, table, filters=(), order=None, columns='*'):
        self._call('select', table)
        found = [
            copy.deepcopy(row) for row in self.tables[table].values()
            if all(_matches(row, column, op, value) for column, op, value in filters)
        ]
        if order:
            column, _, direction = order.partition('.')
            found.sort(key=lambda row: str(row.get(column)), reverse=direction == 'desc')
        if columns != '*':
            wanted = [name.strip() for name in columns.split(',')]
            found = [{name: row.get(name) for name in wanted} for row in found]
        return found

    def upsert(self, table, rows, on_conflict='id'):
        if not rows:
            return
        self._call('upsert', table)
        for row in rows:
            key = str(row[on_conflict])
            merged = dict(self.tables[table].get(key, {}))
            merged.update(copy.deepcopy(row))
            self.tables[table][key] = merged

    def update(self, table, values, filters):
        self._call('update', table)
        for row in self.tables[table].values():
            if all(_matches(row, column, op, value) for column, op, value in filters):
                row.update(values)

    def delete(self, table, filters):
        self._call('delete', table)
        doomed = [
            key for key, row in self.tables[table].items()
            if all(_matches(row, column, op, value) for column, op, value in filters)
        ]
        for key in doomed:
            del self.tables[table][key]

    def fetch_installments(self, user_id):
        installments = self.select('installments', [('user_id', 'eq', str(user_id))], order='created_at.desc')
        for row in installments:
            row['payments'] = self.select(
                'installment_payments',
                [('installment_id', 'eq', str(row['id']))],
                order='due_date.asc',
            )
        return installments

    def probe(self, timeout=None):
        return self.reachable

    def close(self):
        self.closed = True
