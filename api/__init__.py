"""
Reddit Shop API package.
"""
