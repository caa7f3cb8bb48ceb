"""
Pure calculation engines for the reconciliation system.

Engines take frozen dataclass inputs populated by recon_services and return
frozen results.  No engine touches the database or the clock.
"""
