"""
Service layer: credential resolution, webhook authentication, cached market
data access and end-to-end signal processing.
"""
