"""
capaudit - keeps event capability documentation honest.

Compares the capability requirements documented on every event type of a
library against the requirements its production derivation logic computes,
and checks that subtypes carry forward the obligations of their supertypes.
"""

__version__ = "0.4.0"
__all__ = ["__version__"]
