"""
Bastion - Services Package
==========================

Detection and enforcement.

Services:
    guard: GuardService facade used by events and the health server
    antinuke/: Action rate limits, punishment, emergency lockdown
    antiraid/: Join scoring, raid mode, join responses
    quarantine: Role snapshot and restore
    verification: Verification code state machine
    whitelist: Exemptions

Author: حَـــــنَّـــــا
"""
