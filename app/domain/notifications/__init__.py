"""
Notifications Domain

Templated email/SMS dispatch with a durable send log and retry sweep.

Structure:
```
app/domain/notifications/
├── schemas.py      # Message descriptor, results, log responses
├── repository.py   # Templates, settings, notifications_log queries
├── templates.py    # {{placeholder}} rendering and SMS segment counting
├── preferences.py  # Customer opt-out checks
├── providers.py    # Twilio SMS / Resend email / dev log-only providers
├── errors.py       # Error classification and backoff schedule
├── service.py      # Dispatcher: settings -> preferences -> render -> log -> send
├── retry.py        # Retry manager sweep
├── reminders.py    # Appointment and retention reminder jobs
└── router.py       # /admin/notifications endpoints
```
"""
