"""PDF text extraction, page rendering and OCR."""
