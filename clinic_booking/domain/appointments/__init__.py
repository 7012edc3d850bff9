"""
Appointments domain

Booking, the appointment lifecycle and the deferred expiry of unpaid bookings.
"""
