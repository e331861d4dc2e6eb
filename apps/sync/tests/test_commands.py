from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.sync.models import SyncOperation


@pytest.mark.django_db
class TestRunSyncCommand:

    def test_once_drains_queue(self, configured_remote, make_installment):
        installment = make_installment()
        out = StringIO()

        call_command('run_sync', '--once', stdout=out)

        assert 'Applied 1' in out.getvalue()
        assert str(installment.id) in configured_remote.tables['installments']
        assert not SyncOperation.objects.exists()

    def test_once_while_unreachable(self, configured_remote, make_installment):
        make_installment()
        configured_remote.reachable = False
        out = StringIO()

        call_command('run_sync', '--once', stdout=out)

        assert 'unreachable' in out.getvalue()
        assert SyncOperation.objects.count() == 1

    def test_requires_remote_store(self):
        with pytest.raises(CommandError):
            call_command('run_sync', '--once')
