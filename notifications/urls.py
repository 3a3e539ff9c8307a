from django.urls import path

from .views import MyNotificationsView, UnreadCountView

urlpatterns = [
    path("", MyNotificationsView.as_view(), name="my-notifications"),
    path("unread-count/", UnreadCountView.as_view(), name="notifications-unread-count"),
]
