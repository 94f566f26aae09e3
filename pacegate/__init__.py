"""
pacegate - personal automation control plane.
Gates agent actions by mode and pace, audits every attempt, tracks spend,
and pauses itself when usage looks wrong.
"""

__version__ = "1.0.0"
