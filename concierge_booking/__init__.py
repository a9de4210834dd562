"""Top-level package for the concierge booking core.

This package holds the engineering-heavy part of the travel agency's
booking flow: the wizard that takes a selected offer through traveler
details, fee payment and finalization, and the passport / ID card
scanner that fills traveler details from the document's MRZ.

External systems (booking backend, payment processor, OCR engine) are
reached through the ports in concierge_booking.ports; container.py
wires the configured adapters.
"""
