"""
Services: strategy evaluation, claim ledger, signing and collaborators
"""
