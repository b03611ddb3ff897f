"""
Appointments Domain

Customer bookings and the appointment status lifecycle.

Structure:
```
app/domain/appointments/
├── schemas.py     # Booking request, status update, responses
├── repository.py  # Appointment / customer / pet / service lookups
├── booking.py     # Lease-guarded booking commit
├── service.py     # Booking flow, status transitions, cancellation -> waitlist
└── router.py      # POST /appointments + admin status endpoint
```
"""
