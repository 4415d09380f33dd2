"""
aeto command-line interface
"""
