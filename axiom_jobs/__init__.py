"""
axiom-jobs: submit, track and collect build, prove and verify jobs.
"""

__version__ = "0.1.0"
