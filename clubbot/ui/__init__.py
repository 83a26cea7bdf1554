"""
UI Module - Discord UI Components

Interactive components used by the club admin commands.

Available components:
- AdminConfirmationModal: typed confirmation for destructive actions
  (finalize event, delete rank)
"""
