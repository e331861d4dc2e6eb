from django.urls import path
from . import views

app_name = 'sync'

urlpatterns = [
    # GET  /api/sync/status/      - Reachability, pending count, failed ops
    # POST /api/sync/run/         - One reconciliation cycle
    # GET  /api/sync/operations/  - Queue contents
    path('status/', views.sync_status, name='status'),
    path('run/', views.run_sync, name='run'),
    path('operations/', views.operations, name='operations'),
    path(
        'operations/<uuid:operation_id>/acknowledge/',
        views.acknowledge,
        name='acknowledge',
    ),
]
