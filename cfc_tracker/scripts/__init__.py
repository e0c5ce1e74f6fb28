"""
Command line scripts (database setup and seeding)
"""
