"""
Availability Domain

Weekly schedules, per-date exceptions and slot generation. The schedule and
slot modules are pure; the repository and service add persistence.
"""
