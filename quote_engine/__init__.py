"""Quote lifecycle and financial settlement engine for the solar marketplace."""
