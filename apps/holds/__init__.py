"""Holds app package.

A hold reserves rooms for a buyer for a short time (15 minutes by default)
while payment is collected. This app stores holds, runs the create/release
state machine on top of the inventory ledger and expires holds whose TTL
has passed, both per hold (countdown task) and in periodic sweeps.
"""
