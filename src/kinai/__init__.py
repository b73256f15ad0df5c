"""kinai: clinical record manager for a single-practitioner kinesiology clinic.

Stores patient intake forms and per-visit session notes locally, with AI
progress summaries and PDF/CSV export.
"""

__version__ = "1.0.0"
