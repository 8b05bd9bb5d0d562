"""
URL configuration for the mediasync project.

Only the Django admin is exposed; media synchronization itself runs in the
huey worker.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path

admin.site.site_header = 'Media Sync Administration'
admin.site.site_title = 'Media Sync admin'


urlpatterns = [
    path('admin/', admin.site.urls),
]

# Serve stored assets in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
