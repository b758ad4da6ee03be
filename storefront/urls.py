from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    # ============ STOREFRONT & BACK-OFFICE APIS ============
    # Mounted under /api/ so URLs are exactly /api/products/, /api/admin/orders/ ...
    path("api/", include("catalog.urls")),
    path("api/", include("orders.urls")),
    path("api/", include("exchanges.urls")),
    path("api/", include("dashboard.urls")),

    # ============ DJANGO ADMIN ============
    path("admin/", admin.site.urls),
]

urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
