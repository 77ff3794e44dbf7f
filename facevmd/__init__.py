"""
facevmd: convert facial measurement streams (head pose, action units, gaze)
into VMD motion files for MMD models.
"""

__version__ = "0.1.0"
