"""
Scheduling Domain

Availability and booking-conflict logic for the salon calendar.

Structure:
```
app/domain/scheduling/
├── schemas.py              # Business hours, booking settings, slot schemas
├── repository.py           # Settings and calendar queries
├── conflicts.py            # Interval overlap / conflict checker
├── time_calculator.py      # Slot generation and closed-day rules
├── availability_service.py # Settings management, slot queries, pre-commit checks
└── router.py               # GET /availability + admin settings endpoints
```
"""
