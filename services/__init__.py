"""
Services for the contract lifecycle engine.
"""
