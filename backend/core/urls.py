"""
Core app URL configuration.

Included in the project-level ``urls.py`` as::

    path('api/core/', include('core.urls')),

Endpoint Map
------------
Notifications
    GET    /notifications/                 → NotificationViewSet.list
    GET    /notifications/unread-count/    → NotificationViewSet.unread_count
    POST   /notifications/{id}/read/       → NotificationViewSet.mark_as_read
    POST   /notifications/{id}/click/      → NotificationViewSet.mark_as_clicked
    POST   /notifications/read-all/        → NotificationViewSet.mark_all_as_read
    GET    /notifications/stream/          → NotificationViewSet.stream
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import NotificationViewSet

app_name = "core"

router = DefaultRouter()
router.register(r"notifications", NotificationViewSet, basename="notification")

urlpatterns = [
    path("", include(router.urls)),
]
