# Fortunes
# Cookie jars, weighted cabinets and the strfile index format

"""
Core invariant: a quote is only ever drawn through the hierarchy
Cabinet -> Shelf -> Jar -> Cookie, one weighted draw per level.

The binary strfile codec lives in ``fortunes.strfile`` and is usable
on its own to read and write ``.dat`` sidecar files.
"""

__version__ = "0.1.0"
