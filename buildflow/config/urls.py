"""
URL configuration for the BuildFlow CRM backend.

Every app contributes its routes under the shared ``api/`` prefix.
"""
from django.contrib import admin
from django.urls import path, include

from buildflow.core.views import health

admin.site.site_header = "BuildFlow CRM Admin Panel"
admin.site.site_title = "BuildFlow CRM Admin Portal"
admin.site.index_title = "Welcome to BuildFlow CRM Admin"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health, name='health'),
    path('api/', include('buildflow.core.urls')),
    path('api/', include('buildflow.pipeline.urls')),
    path('api/', include('buildflow.inventory.urls')),
]
