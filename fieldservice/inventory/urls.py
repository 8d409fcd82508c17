from django.urls import path
from .views import (
    inventory_list_create, inventory_detail, inventory_categories,
    inventory_allocations, inventory_adjust_stock,
)

urlpatterns = [
    path('inventory/', inventory_list_create, name='inventory-list-create'),
    path('inventory/categories/', inventory_categories, name='inventory-categories'),
    path('inventory/allocations/', inventory_allocations, name='inventory-allocations'),
    path('inventory/<int:pk>/', inventory_detail, name='inventory-detail'),
    path('inventory/<int:pk>/adjust-stock/', inventory_adjust_stock, name='inventory-adjust-stock'),
]
