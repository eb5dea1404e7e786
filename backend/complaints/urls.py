"""
Complaints app URL configuration.

All routes are registered under the ``/api/complaints/`` prefix.

Route Hierarchy
---------------
  /api/complaints/                        → list / create
  /api/complaints/{id}/                   → retrieve / partial_update

  ── Lifecycle @actions ──────────────────────────────────────────
  POST /api/complaints/{id}/status/       → set status
  POST /api/complaints/{id}/assign/       → assign / unassign staff

  ── Collection @actions ─────────────────────────────────────────
  GET  /api/complaints/stream/            → server-sent events
  GET  /api/complaints/meta/              → form metadata

  ── Nested (under /complaints/{complaint_pk}/) ──────────────────
  GET  /api/complaints/{complaint_pk}/remarks/
  POST /api/complaints/{complaint_pk}/remarks/

The remark thread is generated with ``drf-nested-routers``
(``rest_framework_nested``).
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_nested.routers import NestedDefaultRouter

from .views import ComplaintViewSet, RemarkViewSet

# ── Primary Router ──────────────────────────────────────────────────
router = DefaultRouter()
router.register(
    prefix=r"complaints",
    viewset=ComplaintViewSet,
    basename="complaint",
)

# ── Nested Router (under /complaints/{complaint_pk}/) ───────────────
complaints_router = NestedDefaultRouter(
    parent_router=router,
    parent_prefix=r"complaints",
    lookup="complaint",
)
complaints_router.register(
    prefix=r"remarks",
    viewset=RemarkViewSet,
    basename="complaint-remark",
)

urlpatterns = [
    path("", include(router.urls)),
    path("", include(complaints_router.urls)),
]
