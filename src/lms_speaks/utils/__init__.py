"""
Utility Modules for lms-speaks.

    - timeit.py: Wall-clock measurement for process runs and requests
"""
