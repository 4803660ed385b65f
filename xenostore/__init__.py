"""XenoStore storefront API."""
