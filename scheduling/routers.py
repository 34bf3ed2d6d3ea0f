"""
URL mappings for the scheduling API.

Trailing slashes are deliberately omitted so the paths match the ones the
hospital front end already calls.
"""
from django.urls import path, include

from .views import health
from .views.appointments import (
    all_appointments,
    book_appointment,
    cancel_patient_appointment,
    patient_appointments,
    search_patient,
    staff_book_appointment,
    update_appointment_status,
)
from .views.slots import doctor_slots
from .views.statistics import (
    cron_summary,
    daily_statistics,
    generate_statistics,
    statistics_by_date,
    update_missed_appointments,
)


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Booking
    path('api/appointments/book', book_appointment),
    path('api/staff/appointments/book', staff_book_appointment),
    path('api/appointments/patient/<str:patient_id>', patient_appointments),
    path('api/appointments/patient/<str:patient_id>/cancel/<int:appointment_id>', cancel_patient_appointment),
    path('api/appointments/search-patient/<str:patient_id>', search_patient),
    # Management
    path('api/appointments/<int:pk>/status', update_appointment_status),
    path('api/appointments/all', all_appointments),
    path('api/doctors/<int:pk>/slots', doctor_slots),
    # Lifecycle jobs
    path('api/cron/daily-statistics', daily_statistics),
    path('api/cron/statistics/<str:date>', statistics_by_date),
    path('api/cron/generate-statistics', generate_statistics),
    path('api/cron/update-missed-appointments', update_missed_appointments),
    path('api/cron/cron-summary', cron_summary),
]
