from django.urls import path
from . import views

urlpatterns = [
    path('reports/dashboard-kpis/', views.dashboard_kpis, name='dashboard-kpis'),
    path('reports/notifications/', views.notifications, name='notifications'),
    path('reports/revenue/', views.revenue_report, name='revenue-report'),
    path('reports/parts-usage/', views.parts_usage, name='parts-usage'),
    path('reports/customer-spend/', views.customer_spend, name='customer-spend'),
    path('reports/engineer-performance/', views.engineer_performance, name='engineer-performance'),
    path('reports/overdue-accounts/', views.overdue_accounts, name='overdue-accounts'),
]
