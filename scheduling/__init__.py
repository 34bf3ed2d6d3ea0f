"""Appointment scheduling app for the hospital backend.

Holds the booking engine, the appointment ledger with its slot-conflict
guarantees, and the lifecycle scheduler that keeps appointment statuses and
daily statistics up to date.
"""
