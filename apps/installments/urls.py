from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'installments'

router = DefaultRouter()
router.register(r'', views.InstallmentViewSet, basename='installment')

urlpatterns = [
    # GET    /api/installments/                     - List installments (local-first)
    # POST   /api/installments/                     - Create installment + schedule
    # GET    /api/installments/{id}/                - Get installment
    # PUT    /api/installments/{id}/                - Update installment
    # PATCH  /api/installments/{id}/                - Partial update
    # DELETE /api/installments/{id}/                - Move to trash

    # Custom actions
    # POST   /api/installments/{id}/toggle-payment/ - Mark payment paid/unpaid
    # POST   /api/installments/{id}/restore/        - Restore from trash
    # POST   /api/installments/{id}/purge/          - Delete permanently
    # GET    /api/installments/trash/               - List trash
    # POST   /api/installments/trash/empty/         - Purge whole trash
    # POST   /api/installments/{id}/payments/{payment_id}/soft-delete/
    # POST   /api/installments/{id}/payments/{payment_id}/restore/

    path('', include(router.urls)),
]
