"""
Gmail import feature: transaction email parsing, staging, confirmation and scheduled fetch.
"""
