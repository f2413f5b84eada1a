"""
Bucketwise - Source Package

A weekly budgeting engine: income is split into five fixed-percentage
buckets, spending is recorded against them, and leftovers are moved
between buckets or collected into savings trackers.

DESIGN PRINCIPLES:
1. Money is exact: allocation is done in integer cents
2. Fail early, fail visibly (validate before touching storage)
3. Derived state is recomputed from stored rows, never cached
4. Multi-step mutations are atomic
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Bucketwise Team"
