"""
Voice assistant core: semantic memory, voice pipeline and device control.
"""

__version__ = "1.0.0"
