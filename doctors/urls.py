from django.urls import path
from .views import (
    SpecializationListView,
    ServiceListView,
    DoctorListView,
    DoctorSlotsView,
    DoctorSlotsByDateView,
    CreateSlotView,
    GenerateSlotsView,
    DeleteSlotView,
    ReleaseSlotView,
    SlotAvailabilityView,
    BulkDeleteSlotsView,
)

urlpatterns = [
    # Directory
    path('specializations/', SpecializationListView.as_view(), name='specialization-list'),
    path('services/', ServiceListView.as_view(), name='service-list'),
    path('', DoctorListView.as_view(), name='doctor-list'),

    # Slots of one doctor
    path('<int:doctor_id>/slots/', DoctorSlotsView.as_view(), name='doctor-slots'),
    path('<int:doctor_id>/slots/by-date/', DoctorSlotsByDateView.as_view(), name='doctor-slots-by-date'),
    path('<int:doctor_id>/slots/bulk-delete/', BulkDeleteSlotsView.as_view(), name='bulk-delete-slots'),

    # Slot management
    path('slots/', CreateSlotView.as_view(), name='create-slot'),
    path('slots/generate/', GenerateSlotsView.as_view(), name='generate-slots'),
    path('slots/<int:pk>/', DeleteSlotView.as_view(), name='delete-slot'),
    path('slots/<int:pk>/release/', ReleaseSlotView.as_view(), name='release-slot'),
    path('slots/<int:pk>/availability/', SlotAvailabilityView.as_view(), name='slot-availability'),
]
