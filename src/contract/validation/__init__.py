"""Validation rules derived from property metadata, and their execution."""
