"""Adapters layer - Concrete implementations of ports.

This module contains implementations of the port interfaces,
connecting the booking core to external systems like:
- OCR engines (Tesseract)
- The booking REST backend (HTTP, in-memory sandbox)
- Payment processors (Stripe, sandbox)
- Caching systems (in-memory TTL)
"""
