from django.urls import path
from .views import (
    customer_list_create, customer_detail, customer_balance,
    customer_recalculate_balance, customer_history,
    engineer_list_create, engineer_detail,
)

urlpatterns = [
    # Customer endpoints
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/<int:pk>/', customer_detail, name='customer-detail'),
    path('customers/<int:pk>/balance/', customer_balance, name='customer-balance'),
    path('customers/<int:pk>/recalculate-balance/', customer_recalculate_balance, name='customer-recalculate-balance'),
    path('customers/<int:pk>/history/', customer_history, name='customer-history'),

    # Team endpoints
    path('engineers/', engineer_list_create, name='engineer-list-create'),
    path('engineers/<int:pk>/', engineer_detail, name='engineer-detail'),
]
