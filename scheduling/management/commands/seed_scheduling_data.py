"""
Management command to seed demo departments, doctors, users and patients.

Safe to run repeatedly: existing rows are matched by name, e-mail or
username and left in place.
"""
from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction
from rest_framework.authtoken.models import Token

from scheduling.models import Department, Doctor, User
from scheduling.services import reference

DEPARTMENTS = [
    ("Cardiology", "CARD", "Heart and cardiovascular system care"),
    ("Neurology", "NEUR", "Brain and nervous system treatment"),
    ("Orthopedics", "ORTH", "Bone, joint, and muscle care"),
    ("Pediatrics", "PEDS", "Children healthcare and treatment"),
    ("General Medicine", "GMED", "General healthcare and consultation"),
]

MORNING = [
    {"startTime": "09:00", "endTime": "09:30"},
    {"startTime": "09:30", "endTime": "10:00"},
    {"startTime": "10:00", "endTime": "10:30"},
    {"startTime": "10:30", "endTime": "11:00"},
]
AFTERNOON = [
    {"startTime": "14:00", "endTime": "14:30"},
    {"startTime": "14:30", "endTime": "15:00"},
    {"startTime": "15:00", "endTime": "15:30"},
]

DOCTORS = [
    ("Rajesh Kumar", "rajesh.kumar@hospital.com", "Interventional Cardiology", "Cardiology",
     ["Monday", "Wednesday", "Friday"], MORNING),
    ("Priya Sharma", "priya.sharma@hospital.com", "Neurologist", "Neurology",
     ["Tuesday", "Thursday"], MORNING + AFTERNOON),
    ("Amit Patel", "amit.patel@hospital.com", "Orthopedic Surgeon", "Orthopedics",
     ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"], AFTERNOON),
    ("Sneha Reddy", "sneha.reddy@hospital.com", "Pediatrician", "Pediatrics",
     ["Monday", "Wednesday", "Saturday"], MORNING),
    ("Vikram Singh", "vikram.singh@hospital.com", "General Physician", "General Medicine",
     ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"], MORNING + AFTERNOON),
]

PATIENTS = [
    {"name": "Arjun Mehta", "email": "arjun.mehta@example.com", "contact": "9876500001", "age": 34, "gender": "Male"},
    {"name": "Kavya Iyer", "email": "kavya.iyer@example.com", "contact": "9876500002", "age": 28, "gender": "Female"},
    {"name": "Rohan Das", "email": "rohan.das@example.com", "contact": "9876500003", "age": 61, "gender": "Male"},
]


class Command(BaseCommand):
    help = 'Seed demo scheduling data (idempotent).'

    def add_arguments(self, parser):
        parser.add_argument('--password', default='123456', help='Password for the demo staff accounts')

    @transaction.atomic
    def handle(self, *args, **options):
        departments = {}
        for name, code, description in DEPARTMENTS:
            dept, _ = Department.objects.get_or_create(name=name, defaults={'code': code, 'description': description})
            departments[name] = dept
        self.stdout.write(f"departments: {len(departments)}")

        for name, email, specialization, dept_name, days, slots in DOCTORS:
            Doctor.objects.get_or_create(
                email=email,
                defaults={
                    'name': name,
                    'specialization': specialization,
                    'department': departments[dept_name],
                    'available_days': days,
                    'time_slots': slots,
                },
            )
        self.stdout.write(f"doctors: {Doctor.objects.count()}")

        password = make_password(options['password'])
        accounts = [
            ('admin', User.ROLE_ADMIN, None),
            ('subadmin', User.ROLE_SUBADMIN, None),
            ('cardio_staff', User.ROLE_STAFF, departments['Cardiology']),
            ('neuro_staff', User.ROLE_STAFF, departments['Neurology']),
        ]
        for username, role, dept in accounts:
            user, created = User.objects.get_or_create(
                username=username,
                defaults={'role': role, 'department': dept, 'password': password},
            )
            token, _ = Token.objects.get_or_create(user=user)
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role}) token={token.key}"))

        for profile in PATIENTS:
            existing = reference.find_patient_by_contact_or_email(profile['email'], profile['contact'])
            patient = existing or reference.create_patient(profile)
            self.stdout.write(f"patient: {patient.patient_id} {patient.name}")

        self.stdout.write(self.style.SUCCESS("Scheduling demo data ensured."))
