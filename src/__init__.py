"""
Product Catalog API
"""
