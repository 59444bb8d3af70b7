"""Application workflow: eligibility, validation, uploads, wizard and submission."""
