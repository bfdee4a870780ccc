"""
Core application components: app factory, lifecycle, background services,
tenancy and the interfaces services depend on.
"""
