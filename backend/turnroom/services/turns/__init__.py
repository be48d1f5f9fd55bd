"""Turn rotation engine for prompt rooms.

Import collaborators from their modules directly; this package init stays
empty so ``turnroom.models`` can pull in ``constants`` without a cycle.
"""
