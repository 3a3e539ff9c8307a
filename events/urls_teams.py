# events/urls_teams.py - Separate URL configuration for teams API

from rest_framework.routers import SimpleRouter
from .views.teams import TeamViewSet

# List/create sit at the prefix root, where DefaultRouter would mount its API root view
router = SimpleRouter()
router.register(r'', TeamViewSet, basename='teams')

urlpatterns = router.urls
