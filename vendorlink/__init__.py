"""
vendorlink - stream chat turns from AI vendor APIs and detect which wire
protocol an arbitrary endpoint speaks.
"""

__version__ = "0.1.0"
