from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import UserViewSet

# Only the /me/ action is exposed; no list or detail routes.
router = SimpleRouter()
router.register(r'', UserViewSet, basename='user')

urlpatterns = [
    path('', include(router.urls)),
]
