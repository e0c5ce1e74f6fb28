"""
Core domain logic: constants, errors, aggregation and export formatting
"""
