"""
Layered configuration built on top of ConfigObj - neutral / os-specific / per-user files,
with a schema that validates the types of the config data and supplies defaults.
"""
