from django.urls import path
from . import views

app_name = 'analytics'

urlpatterns = [
    # Dashboard cards and lists for the current user
    path('dashboard/', views.dashboard, name='dashboard'),

    # Loan/profit calculator (stateless)
    path('loan-calculator/', views.loan_calculator, name='loan-calculator'),
]
