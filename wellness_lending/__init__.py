"""
Wellness resource lending: loan lifecycle, resource queue, damage
adjudication and student trust scores.
"""

__version__ = "1.0.0"
