from django.urls import path
from . import views

app_name = 'jalali'

urlpatterns = [
    path('today/', views.today, name='today'),
    path('convert/', views.convert, name='convert'),
    path('month/', views.month, name='month'),
]
