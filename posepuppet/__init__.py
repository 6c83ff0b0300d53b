"""Pose Puppet - retarget live 2D pose landmarks onto a fixed template skeleton"""

__version__ = "0.1.0"
