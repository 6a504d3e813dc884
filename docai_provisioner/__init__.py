"""Provisioner for the Document AI invoice-processing pipeline on Google Cloud."""
