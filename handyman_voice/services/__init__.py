"""
Services module for the side effects of a completed booking.

Key components:
- booking_submission: ``BookingSubmitter``, which notifies the customer and the
  operator independently and logs the outcome without touching the live call.
- notifications: ``SmsNotifier``, a thin async wrapper over the Twilio REST client.
- booking_log: ``BookingLog``, an append-only CSV record of bookings.

Usage examples:
```python
from handyman_voice.models.booking import BookingRecord
from handyman_voice.services import BookingSubmitter

submitter = BookingSubmitter()
record = BookingRecord(name="Sam", job="leaky tap", suburb="Sunbury", time="tomorrow 3pm")
submitter.submit_in_background(record, caller="+61412345678")
```
"""

from handyman_voice.services.booking_log import BookingLog
from handyman_voice.services.booking_submission import BookingSubmitter
from handyman_voice.services.notifications import SmsNotifier

__all__ = ["BookingLog", "BookingSubmitter", "SmsNotifier"]
