from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from scheduling.exceptions import DoctorNotFound
from scheduling.services import reference
from scheduling.services.slots import describe_day, find_next_available, today_str, validate_date


@api_view(['GET'])
@permission_classes([AllowAny])
def doctor_slots(request, pk: int):
    """Slot availability of a doctor on ``?date=`` (default today) and the next free slot."""
    doctor = reference.get_doctor(pk)
    if doctor is None:
        raise DoctorNotFound("Doctor not found")
    date = validate_date(request.query_params.get('date') or today_str())
    data = describe_day(doctor, date)
    data['doctorName'] = doctor.name
    data['doctorStatus'] = doctor.status
    nxt = find_next_available(doctor, date) if doctor.is_active else None
    data['nextAvailable'] = {'date': nxt[0], 'time': nxt[1]} if nxt else None
    return Response(data)
