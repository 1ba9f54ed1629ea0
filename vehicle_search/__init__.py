"""
Conversational vehicle search
"""
__version__ = "1.0.0"
