from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    # GET         /api/notifications/vapid-key/      - Public key for PushManager.subscribe
    # POST/DELETE /api/notifications/subscriptions/  - Register / drop this browser
    # POST        /api/notifications/send/           - Push to the current user's devices
    # GET         /api/notifications/due-reminders/  - Daily scan (cron, CRON_SECRET)
    path('vapid-key/', views.vapid_key, name='vapid-key'),
    path('subscriptions/', views.subscriptions, name='subscriptions'),
    path('send/', views.send_notification, name='send'),
    path('due-reminders/', views.due_reminders, name='due-reminders'),
    path('history/', views.history, name='history'),
]
