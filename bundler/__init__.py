"""
Zero-configuration bundle planner for small JavaScript libraries
"""
__version__ = "0.1.0"
