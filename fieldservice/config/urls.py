"""
URL configuration for the fieldservice project.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Dairy Field Service Admin"
admin.site.site_title = "Dairy Field Service Admin Portal"
admin.site.index_title = "Service, Parts & Billing Administration"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('fieldservice.core.urls')),
    path('api/v1/', include('fieldservice.parties.urls')),
    path('api/v1/', include('fieldservice.inventory.urls')),
    path('api/v1/', include('fieldservice.jobs.urls')),
    path('api/v1/', include('fieldservice.billing.urls')),
    path('api/v1/', include('fieldservice.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
