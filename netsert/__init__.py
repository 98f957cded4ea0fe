"""netsert: declarative network state assertions over gNMI.

Assertions name a device path and a predicate; netsert fetches the live
value from each target over gNMI and reports pass, fail or error for
every assertion, running targets and per-target fetches concurrently.
"""

__version__ = "1.0.0"
