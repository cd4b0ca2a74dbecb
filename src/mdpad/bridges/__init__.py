"""Host bridges: filesystem, Word conversion, images and OCR."""
