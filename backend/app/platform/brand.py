"""Centralized brand configuration for user-facing copy."""

BRAND_NAME = "Clevrs"
BRAND_DOMAIN = "clevrs.com"
BRAND_PRODUCT_NAME = "Freelance Developer Marketplace"
BRAND_APP_DESCRIPTION = "Marketplace matching client projects with rotating developer candidates"

def brand_email_from() -> str:
    return f"{BRAND_NAME} <noreply@{BRAND_DOMAIN}>"
