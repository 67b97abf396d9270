"""
framemesh - topology repair and healing for structural line meshes.

Turns straight structural members (angles, beams, channels, bulb bars,
round bars, tubes) into a connected finite-element line model ready for
Nastran export.
"""

__version__ = "0.1.0"
