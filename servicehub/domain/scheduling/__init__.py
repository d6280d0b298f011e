"""
Scheduling Domain

Appointment requests, staff proposals, confirmation, registration, rescheduling
and cancellation, plus the iCalendar export.
"""
