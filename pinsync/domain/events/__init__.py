"""Domain Event definitions.

Represents significant occurrences during API traffic (deferrals, backoffs,
timeouts) that other parts of the system might react to.
"""
