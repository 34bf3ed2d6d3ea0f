"""
Integration tests for the scheduling API.

These tests exercise the public booking flow, patient self-service,
role scoping of the management endpoints and the statistics/cron
endpoints through DRF's APIClient within the APITestCase base class.
"""

from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient, APITestCase

from scheduling.models import Appointment, DailyStatsSnapshot, Department, Doctor, Patient, User
from scheduling.services import reference
from scheduling.services.slots import shift_date, today_str

MONDAY = '2030-01-07'
TUESDAY = '2030-01-08'
SLOTS = [
    {"startTime": "09:00", "endTime": "09:30"},
    {"startTime": "09:30", "endTime": "10:00"},
]


class SchedulingAPITests(APITestCase):
    def setUp(self) -> None:
        self.cardio = Department.objects.create(name="Cardiology")
        self.neuro = Department.objects.create(name="Neurology")
        self.doctor = Doctor.objects.create(
            name="Dana Doe", email="dana@hospital.test", specialization="Cardiologist",
            department=self.cardio, available_days=["Monday", "Wednesday"], time_slots=SLOTS,
        )
        self.neuro_doctor = Doctor.objects.create(
            name="Noor Lee", email="noor@hospital.test", specialization="Neurologist",
            department=self.neuro, available_days=["Monday"], time_slots=SLOTS,
        )
        self.patient = reference.create_patient({
            'name': 'Asha Rao', 'email': 'asha@example.com', 'contact': '9000000001', 'age': 41, 'gender': 'Female',
        })
        self.admin = self._user("admin1", User.ROLE_ADMIN)
        self.subadmin = self._user("sub1", User.ROLE_SUBADMIN)
        self.staff = self._user("staff1", User.ROLE_STAFF, self.cardio)
        self.client = APIClient()

    def _user(self, username, role, department=None):
        user = User.objects.create_user(username=username, password="P@ssw0rd1", role=role, department=department)
        Token.objects.create(user=user)
        return user

    def authenticate(self, user: User) -> None:
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {user.auth_token.key}")

    def book(self, **overrides):
        payload = {'doctorId': self.doctor.id, 'date': MONDAY, 'time': '09:00', 'patientId': self.patient.patient_id}
        payload.update(overrides)
        return self.client.post('/api/appointments/book', payload, format='json')

    # booking

    def test_new_patient_booking(self) -> None:
        resp = self.client.post('/api/appointments/book', {
            'doctorId': self.doctor.id,
            'departmentId': self.cardio.id,
            'date': MONDAY,
            'time': '09:00',
            'patientName': 'Meera Joshi',
            'patientEmail': 'meera@example.com',
            'patientContact': '9000000010',
            'patientAge': 52,
            'patientGender': 'Female',
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertTrue(resp.data['isNewPatient'])
        self.assertRegex(resp.data['patientId'], r'^PAT-\d{4}-\d{6}$')
        self.assertIn('note', resp.data)
        self.assertEqual(resp.data['appointment']['status'], 'Booked')

    def test_existing_patient_then_redirect(self) -> None:
        first = self.book()
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertFalse(first.data['redirected'])
        second = self.book()
        self.assertEqual(second.status_code, status.HTTP_201_CREATED)
        self.assertTrue(second.data['redirected'])
        self.assertEqual(second.data['requestedSlot'], {'date': MONDAY, 'time': '09:00'})
        self.assertEqual(second.data['bookedSlot'], {'date': MONDAY, 'time': '09:30'})

    def test_booking_errors_use_envelope(self) -> None:
        resp = self.book(date=TUESDAY)
        self.assertEqual(resp.status_code, 422)
        self.assertFalse(resp.data['ok'])
        self.assertEqual(resp.data['error']['code'], 'doctor_unavailable')

        resp = self.book(time='11:00')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['error']['code'], 'invalid_slot')

        resp = self.book(patientId='PAT-2030-999999')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data['error']['code'], 'patient_not_found')

        resp = self.book(doctorId=999999)
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_duplicate_patient_returns_existing_id(self) -> None:
        resp = self.book(
            patientId='', patientName='Asha R', patientEmail='asha@example.com',
            patientContact='9111111111', patientAge=41, patientGender='Female',
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['existingPatientId'], self.patient.patient_id)
        self.assertEqual(Appointment.objects.count(), 0)

    def test_booking_payload_validation(self) -> None:
        resp = self.book(date='07/01/2030')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['error']['code'], 'api_error')

    def test_staff_booking_scoped_to_department(self) -> None:
        resp = self.client.post('/api/staff/appointments/book', {}, format='json')
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
        self.authenticate(self.staff)
        resp = self.client.post('/api/staff/appointments/book', {
            'doctorId': self.doctor.id, 'date': MONDAY, 'time': '09:00', 'patientId': self.patient.patient_id,
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        resp = self.client.post('/api/staff/appointments/book', {
            'doctorId': self.neuro_doctor.id, 'date': MONDAY, 'time': '09:00', 'patientId': self.patient.patient_id,
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    # patient self-service

    def test_patient_history_and_cancel(self) -> None:
        booked = self.book().data['appointment']['id']
        url = f'/api/appointments/patient/{self.patient.patient_id}'
        resp = self.client.get(url)
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['summary']['total'], 1)
        self.assertEqual(resp.data['appointments']['upcoming'][0]['id'], booked)

        resp = self.client.delete(f'{url}/cancel/{booked}')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertFalse(Appointment.objects.filter(pk=booked).exists())

        resp = self.client.delete(f'{url}/cancel/{booked}')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancel_past_appointment_is_illegal(self) -> None:
        past = Appointment.objects.create(
            doctor=self.doctor, patient=self.patient, department=self.cardio,
            date=shift_date(today_str(), -2), time='09:00',
        )
        resp = self.client.delete(f'/api/appointments/patient/{self.patient.patient_id}/cancel/{past.id}')
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data['error']['code'], 'illegal_state')
        self.assertTrue(Appointment.objects.filter(pk=past.id).exists())

    def test_search_patient(self) -> None:
        resp = self.client.get(f'/api/appointments/search-patient/{self.patient.patient_id}')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['patient']['name'], 'Asha Rao')
        resp = self.client.get('/api/appointments/search-patient/PAT-2000-000000')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_doctor_slots(self) -> None:
        self.book()
        resp = self.client.get(f'/api/doctors/{self.doctor.id}/slots', {'date': MONDAY})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([s['available'] for s in resp.data['slots']], [False, True])
        self.assertEqual(resp.data['nextAvailable'], {'date': MONDAY, 'time': '09:30'})
        resp = self.client.get(f'/api/doctors/{self.doctor.id}/slots', {'date': 'soon'})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    # management

    def test_status_update_roles(self) -> None:
        appt_id = self.book().data['appointment']['id']
        url = f'/api/appointments/{appt_id}/status'
        resp = self.client.put(url, {'status': 'Attended'}, format='json')
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

        self.authenticate(self.staff)
        resp = self.client.put(url, {'status': 'Booked'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        resp = self.client.put(url, {'status': 'Attended'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['appointment']['status'], 'Attended')

        self.authenticate(self.admin)
        resp = self.client.put(url, {'status': 'Cancelled'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['error']['code'], 'invalid_status')
        resp = self.client.put(url, {'status': 'Booked'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

    def test_staff_cannot_touch_other_department(self) -> None:
        appt_id = self.book(doctorId=self.neuro_doctor.id).data['appointment']['id']
        self.authenticate(self.staff)
        resp = self.client.put(f'/api/appointments/{appt_id}/status', {'status': 'Attended'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_all_appointments_scoping(self) -> None:
        self.book()
        self.book(doctorId=self.neuro_doctor.id)
        self.authenticate(self.staff)
        resp = self.client.get('/api/appointments/all')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['pagination']['totalRecords'], 1)
        self.assertEqual(resp.data['appointments'][0]['department']['id'], self.cardio.id)

        self.authenticate(self.subadmin)
        resp = self.client.get('/api/appointments/all', {'limit': 1})
        self.assertEqual(resp.data['pagination']['totalRecords'], 2)
        self.assertTrue(resp.data['pagination']['hasNext'])

    # statistics and cron

    def test_cron_endpoints_require_admin(self) -> None:
        self.authenticate(self.staff)
        self.assertEqual(self.client.get('/api/cron/daily-statistics').status_code, status.HTTP_403_FORBIDDEN)
        self.authenticate(self.subadmin)
        self.assertEqual(self.client.get('/api/cron/daily-statistics').status_code, status.HTTP_200_OK)
        resp = self.client.post('/api/cron/generate-statistics', {'date': '2025-01-10'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_generate_statistics_once(self) -> None:
        self.authenticate(self.admin)
        resp = self.client.post('/api/cron/generate-statistics', {'date': '2025-01-10'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['stats']['totalAppointments'], 0)
        resp = self.client.post('/api/cron/generate-statistics', {'date': '2025-01-10'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(DailyStatsSnapshot.objects.filter(date='2025-01-10').count(), 1)

        resp = self.client.get('/api/cron/statistics/2025-01-10')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        resp = self.client.get('/api/cron/statistics/2025-01-11')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

        resp = self.client.get('/api/cron/daily-statistics')
        self.assertEqual(resp.data['summary']['totalDays'], 1)
        self.assertEqual(len(resp.data['dailyStatistics']), 1)

    def test_update_missed_appointments(self) -> None:
        Appointment.objects.create(
            doctor=self.doctor, patient=self.patient, department=self.cardio, date='2025-01-10', time='09:00',
        )
        self.authenticate(self.admin)
        resp = self.client.post('/api/cron/update-missed-appointments', {'date': '2025-01-10'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['updatedCount'], 1)
        resp = self.client.post('/api/cron/update-missed-appointments', {'date': today_str()}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        resp = self.client.post('/api/cron/update-missed-appointments', {}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cron_summary(self) -> None:
        self.authenticate(self.admin)
        resp = self.client.get('/api/cron/cron-summary')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        names = {job['name'] for job in resp.data['cronJobStatus']}
        self.assertEqual(names, {'appointmentCleanup', 'dailyStats', 'weeklyCleanup', 'reminders'})
        self.assertIn('todayBookedAppointments', resp.data['currentMetrics'])

    def test_healthz(self) -> None:
        resp = self.client.get('/healthz')
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()['ok'])
