from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'events'

router = DefaultRouter()
router.register(r'', views.EventViewSet, basename='event')

urlpatterns = [
    # GET    /api/events/?start=&end=  - Events in a date range
    # POST   /api/events/              - Create event
    # GET    /api/events/{id}/         - Get event
    # PUT    /api/events/{id}/         - Update event
    # PATCH  /api/events/{id}/         - Partial update
    # DELETE /api/events/{id}/         - Delete event

    path('', include(router.urls)),
]
