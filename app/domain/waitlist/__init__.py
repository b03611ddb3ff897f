"""
Waitlist Domain

Matching waitlisted customers to freed slots and managing time-bounded offers.

Structure:
```
app/domain/waitlist/
├── schemas.py     # Match / fill-slot / booking requests, responses
├── repository.py  # Entry and offer queries
├── matcher.py     # Time-preference and FIFO selection rules
├── service.py     # Offers, acceptance (first writer wins), expiration sweep, SMS replies
└── router.py      # /admin/waitlist endpoints
```
"""
