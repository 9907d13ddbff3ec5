"""
Core domain: models, validation rules, normalization and ratio detection.
"""
