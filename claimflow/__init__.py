"""claimflow: inspection flow engine for property insurance claims."""
