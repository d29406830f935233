# app/esign/__init__.py

"""
E-Sign Module

This module bridges the signing provider and the local document queue:
- Uploading queued documents for signing (request-sign)
- Tracking provider callbacks through the document lifecycle
- Requesting the e-meterai stamp once signing completes
- Moving finished documents into the finish folder
"""
