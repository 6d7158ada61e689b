"""Find near-duplicate photos and burst series in a cloud photo library."""
