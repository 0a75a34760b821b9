from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("accounts/", include("django.contrib.auth.urls")),
    path("api/auth/", include("accounts.urls")),
    path("", include("marketplace.urls")),
]

# Serve user-uploaded media (invoice documents) in development.
# In production, serve media via CDN or web server (e.g., Nginx) instead.
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)


# admin customisation
admin.site.site_header = "Freight Marketplace"
admin.site.site_title = "Freight Marketplace"
admin.site.index_title = "Marketplace Portal"
