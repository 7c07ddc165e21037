"""
InspectAI - Kitchen Exhaust Inspection Reports and Service Proposals

Collects inspection details, produces narrative reports through a vision
model, and prices the follow-up service proposal from a draft shared between
the inspection form and the proposal preview.
"""

__version__ = "1.0.0"
