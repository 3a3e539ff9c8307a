from .events import (
    EventListCreateView,
    EventDetailView,
    OrganizerEventsView,
    OrganizerEventDetailView,
    PublishEventView,
    EventStatusView,
)
from .registrations import (
    RegisterEventView,
    MyRegistrationsView,
    RegistrationDetailView,
    CancelRegistrationView,
    EventRegistrationsView,
    UploadPaymentProofView,
    ApprovePaymentView,
    RejectPaymentView,
    PaymentApprovalsView,
)
from .scan import CheckInView, RegistrationQRImageView, AttendanceListView
from .feedback import EventFeedbackView, MyFeedbackView
from .teams import TeamViewSet
