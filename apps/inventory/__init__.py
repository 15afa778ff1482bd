"""Inventory app package.

Holds the per-room, per-night availability ledger. Every change to the
``booked_rooms`` / ``held_rooms`` counters goes through
:class:`apps.inventory.ledger.InventoryLedger`, which applies conditional,
row-locked updates inside the caller's transaction.
"""
