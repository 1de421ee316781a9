"""
Helitour: capacity holds and booking commits for helicopter tours.

Customers browse scheduled flights, place short-lived seat holds while they
fill in the booking form, and commit bookings that permanently consume the
flight's seat and weight capacity. Coordinators manage same-day flights,
walk-in bookings and check-in on top of the same core.
"""

__version__ = "0.1.0"
