"""
Subscription Tracker - Source Package

Tracks recurring subscriptions (streaming services, SIPs, memberships),
works out when each one renews and what it has cost so far, and moves a
user's subscriptions in and out of a versioned export document.

DESIGN PRINCIPLES:
1. Calculations are pure functions of the data and an explicit date
2. Fail early, fail visibly
3. No silent corrections: derived values are recomputed, never trusted
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Subscription Tracker Team"
