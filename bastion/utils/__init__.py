"""
Bastion - Utils Package
=======================

Helpers with no dependency on guard state.

Available Utilities:
    async_utils: Safe background tasks and logged gather
    scheduler: Keyed one-shot timers
    discord_rate_limit: HTTP error logging
    error_handler: Categorized error logging, safe_execute

Author: حَـــــنَّـــــا
"""
