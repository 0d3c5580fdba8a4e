"""
Orders Domain

Work plans, sequential stages, delay requests and completion for bookings
that were paid and converted.
"""
