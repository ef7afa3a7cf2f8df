"""Domain Event definitions.

Represents significant occurrences within the domain (API calls, retries,
provider fallbacks) that other parts of the system might react to.
"""
