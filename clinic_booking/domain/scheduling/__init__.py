"""
Scheduling domain

Slot availability: office hours, holidays, absences and existing bookings
decide which quarter-hour slots a doctor can take.
"""
