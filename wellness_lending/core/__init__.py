"""
Core utilities: exceptions, events and helpers shared by every layer.
"""
