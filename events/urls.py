from django.urls import path

from .views import (
    EventListCreateView,
    EventDetailView,
    OrganizerEventsView,
    OrganizerEventDetailView,
    PublishEventView,
    EventStatusView,
    RegisterEventView,
    MyRegistrationsView,
    RegistrationDetailView,
    CancelRegistrationView,
    EventRegistrationsView,
    UploadPaymentProofView,
    ApprovePaymentView,
    RejectPaymentView,
    PaymentApprovalsView,
    CheckInView,
    RegistrationQRImageView,
    AttendanceListView,
    EventFeedbackView,
    MyFeedbackView,
)

urlpatterns = [
    # Events
    path("", EventListCreateView.as_view(), name="event-list"),
    path("mine/", OrganizerEventsView.as_view(), name="organizer-events"),
    path("<int:event_id>/", EventDetailView.as_view(), name="event-detail"),
    path("<int:event_id>/manage/", OrganizerEventDetailView.as_view(), name="event-manage"),
    path("<int:event_id>/publish/", PublishEventView.as_view(), name="event-publish"),
    path("<int:event_id>/status/", EventStatusView.as_view(), name="event-status"),

    # Registration
    path("<int:event_id>/register/", RegisterEventView.as_view(), name="event-register"),
    path("<int:event_id>/registrations/", EventRegistrationsView.as_view(), name="event-registrations"),
    path("<int:event_id>/payments/", PaymentApprovalsView.as_view(), name="event-payments"),
    path("<int:event_id>/check-in/", CheckInView.as_view(), name="event-check-in"),
    path("<int:event_id>/attendance/", AttendanceListView.as_view(), name="event-attendance"),
    path("<int:event_id>/feedback/", EventFeedbackView.as_view(), name="event-feedback"),
    path("<int:event_id>/feedback/mine/", MyFeedbackView.as_view(), name="event-feedback-mine"),

    path("registrations/mine/", MyRegistrationsView.as_view(), name="my-registrations"),
    path("registrations/<int:reg_id>/", RegistrationDetailView.as_view(), name="registration-detail"),
    path("registrations/<int:reg_id>/cancel/", CancelRegistrationView.as_view(), name="registration-cancel"),
    path("registrations/<int:reg_id>/payment-proof/", UploadPaymentProofView.as_view(), name="registration-payment-proof"),
    path("registrations/<int:reg_id>/approve/", ApprovePaymentView.as_view(), name="registration-approve"),
    path("registrations/<int:reg_id>/reject/", RejectPaymentView.as_view(), name="registration-reject"),
    path("registrations/<int:reg_id>/qr/", RegistrationQRImageView.as_view(), name="registration-qr"),
]
