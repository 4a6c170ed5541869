from django.urls import path
from .views import (
    AppointmentListView,
    PendingRequestsView,
    AppointmentRequestView,
    StaffCreateAppointmentView,
    AppointmentDetailView,
    AssignDoctorServiceView,
    BindSlotView,
    ScheduleAppointmentView,
    ConfirmAppointmentView,
    CancelAppointmentView,
    CompleteAppointmentView,
    WeeklyCalendarView,
)

urlpatterns = [
    # Creation
    path('request/', AppointmentRequestView.as_view(), name='request-appointment'),
    path('create/', StaffCreateAppointmentView.as_view(), name='staff-create-appointment'),

    # List appointments
    path('', AppointmentListView.as_view(), name='appointment-list'),
    path('requests/', PendingRequestsView.as_view(), name='pending-requests'),
    path('calendar/', WeeklyCalendarView.as_view(), name='weekly-calendar'),

    # Single appointment
    path('<int:pk>/', AppointmentDetailView.as_view(), name='appointment-detail'),

    # Actions
    path('<int:pk>/assign/', AssignDoctorServiceView.as_view(), name='assign-appointment'),
    path('<int:pk>/bind-slot/', BindSlotView.as_view(), name='bind-slot'),
    path('<int:pk>/schedule/', ScheduleAppointmentView.as_view(), name='schedule-appointment'),
    path('<int:pk>/confirm/', ConfirmAppointmentView.as_view(), name='confirm-appointment'),
    path('<int:pk>/cancel/', CancelAppointmentView.as_view(), name='cancel-appointment'),
    path('<int:pk>/complete/', CompleteAppointmentView.as_view(), name='complete-appointment'),
]
