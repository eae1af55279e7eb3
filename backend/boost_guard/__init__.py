"""
Boost guard: strategy evaluation and claim signing service
"""
__version__ = "0.1.0"
