"""Bookings app package.

This app turns a paid hold into confirmed bookings. A verified payment
webhook is deduplicated by event id, then the hold's held rooms are moved
to booked rooms in the inventory ledger and one booking line is written per
held room type, all in a single database transaction.
"""
