"""
Finite-element line model, indexes, repair modifiers and healing pipeline.
"""
