"""
Editor engine: annotation documents, coordinates, rendering, selection and sync.
"""
