"""
CS_Libs - Canvas Studio Library Modules

This package contains the editing core of Canvas Studio,
organized into specialized sub-packages:

- GeometryLib: Color conversions and normalized/pixel coordinate frames
- EditingLib: Overlay, paint, crop/rotate and adjustment engines plus the editor session
- VersionStoreLib: Asset storage, version history and AI region edits
"""

__version__ = "0.1.0"
