"""
Directory module: the access gate and slug resolution for boss profile pages.
"""
