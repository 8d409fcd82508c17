from django.urls import path
from .views import (
    job_list_create, job_detail, job_items, job_item_detail, job_status,
    job_pipeline, job_calendar, job_service_report,
)

urlpatterns = [
    path('jobs/', job_list_create, name='job-list-create'),
    path('jobs/pipeline/', job_pipeline, name='job-pipeline'),
    path('jobs/calendar/', job_calendar, name='job-calendar'),
    path('jobs/<int:pk>/', job_detail, name='job-detail'),
    path('jobs/<int:pk>/items/', job_items, name='job-items'),
    path('jobs/<int:pk>/items/<int:item_id>/', job_item_detail, name='job-item-detail'),
    path('jobs/<int:pk>/status/', job_status, name='job-status'),
    path('jobs/<int:pk>/service-report/', job_service_report, name='job-service-report'),
]
