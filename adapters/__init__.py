"""Adapters from OCR oracle responses to ExtractionRecord."""
