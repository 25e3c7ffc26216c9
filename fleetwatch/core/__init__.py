"""
Configuration, security and error kinds
"""
