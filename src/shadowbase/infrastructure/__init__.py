"""Infrastructure layer for ShadowBase.

Contains the persistence host (models, tables, write pipeline) and the
history tracking wired on top of it.
"""
